"""SQLAlchemy ORM Models for the stand-up bot.

Teams own every other row; deleting a team cascades at the database level.
"""

import datetime as dt
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDMixin, utcnow


# =============================================================================
# ENUMS
# =============================================================================


class ReminderStatus(str, PyEnum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


DEFAULT_REMINDER_TIME = "19:00:00"
DEFAULT_DEADLINE_TIME = "20:00:00"
DEFAULT_TIMEZONE = "America/New_York"


# =============================================================================
# TEAM
# =============================================================================


class Team(Base, UUIDMixin, TimestampMixin):
    """One installed Slack workspace and its stand-up configuration."""

    __tablename__ = "teams"

    slack_team_id: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bot_token: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Bot OAuth token, Fernet-encrypted when ENCRYPTION_KEY is set",
    )
    bot_user_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    installed_by: Mapped[str | None] = mapped_column(String(50), nullable=True)

    standup_channel_id: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Channel that receives the daily summary",
    )
    # Stored as HH:MM:SS text so tick matching is a portable prefix LIKE
    reminder_time: Mapped[str] = mapped_column(
        String(8), default=DEFAULT_REMINDER_TIME, nullable=False
    )
    deadline_time: Mapped[str] = mapped_column(
        String(8), default=DEFAULT_DEADLINE_TIME, nullable=False
    )
    timezone: Mapped[str] = mapped_column(
        String(64), default=DEFAULT_TIMEZONE, nullable=False
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.standup_channel_id)

    def __repr__(self) -> str:
        return f"<Team {self.slack_team_id} ({self.name})>"


# =============================================================================
# SUBMISSIONS
# =============================================================================


class Submission(Base, UUIDMixin):
    """
    One raw stand-up message.

    A user may have several rows on the same date; they are merged on
    read, never on write.
    """

    __tablename__ = "submissions"

    team_id: Mapped[UUID] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
    )
    slack_user_id: Mapped[str] = mapped_column(String(50), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_late: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    posted_to_channel: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    thread_ts: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_submissions_team_date", "team_id", "date"),
        Index("idx_submissions_team_user_date", "team_id", "slack_user_id", "date"),
    )


# =============================================================================
# REMINDERS
# =============================================================================


class ReminderRecord(Base, UUIDMixin):
    """
    Tracks whether the reminder flow fired for a team on a date.

    At most one row per (team, date). This is kept by the get-or-create
    accessor, not by a constraint.
    """

    __tablename__ = "reminder_records"

    team_id: Mapped[UUID] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
    )
    scheduled_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    sent_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[ReminderStatus] = mapped_column(
        Enum(ReminderStatus, name="reminder_status", values_callable=lambda x: [e.value for e in x]),
        default=ReminderStatus.PENDING,
        nullable=False,
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_reminder_records_team_date", "team_id", "scheduled_date"),
    )


# =============================================================================
# MEMBERS
# =============================================================================


class Member(Base, UUIDMixin, TimestampMixin):
    """Per-user preferences inside a team (leave and skip days)."""

    __tablename__ = "members"

    team_id: Mapped[UUID] = mapped_column(
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
    )
    slack_user_id: Mapped[str] = mapped_column(String(50), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    leave_until: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    skipped_on: Mapped[dt.date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        UniqueConstraint("team_id", "slack_user_id", name="uq_members_team_user"),
    )

    def is_excused_on(self, day: dt.date) -> bool:
        if self.skipped_on == day:
            return True
        return self.leave_until is not None and day <= self.leave_until
