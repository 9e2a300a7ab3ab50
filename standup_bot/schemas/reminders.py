"""Schemas for the reminder tick endpoint."""

from pydantic import Field

from .base import StandupBaseModel


class TickRequest(StandupBaseModel):
    """The minute to process. Omitted fields default to now."""

    hour: int | None = Field(default=None, ge=0, le=23)
    minute: int | None = Field(default=None, ge=0, le=59)


class TickResponse(StandupBaseModel):
    status: str
    tick: str
    reminded: int
    posted: int
    skipped: int
    errors: list[str] = []
