"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, HTTPException, Request

from vendora_realtime.services import Services
from vendora_realtime.services.signature import (
    SIGNATURE_HEADER,
    ServiceMisconfigured,
    SignatureInvalid,
)


def get_services(request: Request) -> Services:
    return request.app.state.services


async def verified_body(
    request: Request,
    services: Services = Depends(get_services),
) -> bytes:
    """Raw request body, only if its HMAC signature checks out.

    Learn: The signature covers the exact bytes sent, so we read
    request.body() ourselves and parse JSON only afterwards.
    """
    body = await request.body()
    try:
        services.verifier.verify(body, request.headers.get(SIGNATURE_HEADER))
    except SignatureInvalid as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ServiceMisconfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    return body


def require_debug_endpoints(services: Services = Depends(get_services)) -> None:
    """404 unless debug endpoints are enabled for this deployment."""
    if not services.settings.debug_endpoints:
        raise HTTPException(status_code=404, detail="Not found")
