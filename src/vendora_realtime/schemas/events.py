"""Pydantic schemas for webhook submissions.

Learn: Bodies are parsed only after the signature check, so these
models are validated by hand (model_validate) instead of being declared
as FastAPI body parameters. FastAPI would parse the body before our
signature dependency ever ran.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator


class EventSubmission(BaseModel):
    event: str = Field(min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)

    # Optional targeting — default is the broadcast room
    user_id: Optional[Union[int, str]] = None
    role: Optional[str] = None

    @field_validator("data", mode="before")
    @classmethod
    def default_data(cls, v):
        return {} if v is None else v


class BatchSubmission(BaseModel):
    events: list[Any]


def submission_error(exc: ValidationError) -> str:
    """Short, caller-safe reason for a rejected submission."""
    for error in exc.errors():
        if error.get("loc", ())[:1] == ("event",):
            return "Event type is required"
    return "Invalid event payload"
