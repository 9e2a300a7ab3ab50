"""SQLAlchemy ORM Models for the stand-up bot."""

from .base import Base, TimestampMixin, UUIDMixin, utcnow
from .models import (
    DEFAULT_DEADLINE_TIME,
    DEFAULT_REMINDER_TIME,
    DEFAULT_TIMEZONE,
    Member,
    ReminderRecord,
    ReminderStatus,
    Submission,
    Team,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "utcnow",
    # Enums and defaults
    "ReminderStatus",
    "DEFAULT_REMINDER_TIME",
    "DEFAULT_DEADLINE_TIME",
    "DEFAULT_TIMEZONE",
    # Tables
    "Team",
    "Submission",
    "ReminderRecord",
    "Member",
]
