"""Pydantic schemas for the stand-up API."""

from .base import ErrorResponse, StandupBaseModel
from .reminders import TickRequest, TickResponse
from .teams import TeamConfigResponse, TeamConfigUpdate, TeamStatusResponse

__all__ = [
    "StandupBaseModel",
    "ErrorResponse",
    "TickRequest",
    "TickResponse",
    "TeamConfigUpdate",
    "TeamConfigResponse",
    "TeamStatusResponse",
]
