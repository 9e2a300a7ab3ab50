"""Base schemas and common types for the stand-up API."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class StandupBaseModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        use_enum_values=True,
    )


class ErrorResponse(BaseModel):
    """Standard error body."""

    error: str
    message: str
    details: list[Any] = []
