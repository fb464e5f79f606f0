"""Log buffer endpoints — JSON snapshot and the static viewer page."""

from importlib import resources

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from vendora_realtime.api.deps import get_services
from vendora_realtime.services import Services

router = APIRouter(prefix="/logs")


@router.get("")
async def recent_logs(services: Services = Depends(get_services)):
    """Current ring buffer, most recent first."""
    entries = services.log_store.snapshot()
    return {"count": len(entries), "logs": [e.to_dict() for e in entries]}


@router.get("/ui", response_class=HTMLResponse)
async def logs_viewer():
    """Live log viewer (connects to /ws as a guest and tails logs-ui)."""
    page = resources.files("vendora_realtime").joinpath("static/logs.html")
    return HTMLResponse(page.read_text(encoding="utf-8"))
