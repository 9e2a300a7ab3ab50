"""Schemas for team configuration and daily status."""

from datetime import date, datetime

from pydantic import Field, field_validator

from ..services.errors import ConfigurationError
from ..services.timeclock import get_zone, normalize_time
from .base import StandupBaseModel


class TeamConfigUpdate(StandupBaseModel):
    """Configuration surface. Every field is optional."""

    standup_channel_id: str | None = Field(default=None, max_length=50)
    reminder_time: str | None = Field(default=None, description="HH:MM wall-clock")
    deadline_time: str | None = Field(default=None, description="HH:MM wall-clock")
    timezone: str | None = Field(default=None, description="IANA zone, e.g. Europe/Berlin")

    @field_validator("reminder_time", "deadline_time")
    @classmethod
    def validate_time(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            return normalize_time(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            get_zone(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v


class TeamConfigResponse(StandupBaseModel):
    """Current configuration of an installed team."""

    slack_team_id: str
    name: str | None
    standup_channel_id: str | None
    reminder_time: str
    deadline_time: str
    timezone: str
    is_configured: bool
    updated_at: datetime | None = None


class TeamStatusResponse(StandupBaseModel):
    """Submission breakdown for one day."""

    date: date
    submitted_users: list[str]
    late_users: list[str]
    missing_users: list[str]
    display_names: dict[str, str]
    roster_available: bool
