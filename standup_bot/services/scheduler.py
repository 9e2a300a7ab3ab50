"""
Reminder Scheduler: which teams are due at a tick, and reminder tracking.

Ticks are supplied from outside, once per minute. A team matches a tick
when its stored HH:MM:SS time starts with the tick's HH:MM, so ticks must
cover every minute exactly once.

The job matches by instant: the tick is converted to each team's own zone
and compared with that team's local reminder or deadline time, so the
stand-up day and lateness are judged on the same clock as the match.

Duplicate-send suppression is the caller's job: call
``ensure_reminder_record`` and check its status before sending. Two
overlapping ticks can still both see a pending record; there is no
atomic claim.
"""

import logging
from collections.abc import Sequence
from datetime import date, datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import ReminderRecord, ReminderStatus, Team, utcnow
from .errors import ConfigurationError, StandupError
from .timeclock import now_in, tick_pattern

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Tick matching and per-day reminder records."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # TICK MATCHING
    # =========================================================================

    async def teams_due_for_reminder(
        self,
        hour: int | str,
        minute: int | str,
    ) -> Sequence[Team]:
        """
        Teams whose reminder time falls in this minute.

        Teams without a summary channel are included; callers filter them.
        """
        pattern = tick_pattern(hour, minute)
        result = await self._session.execute(
            select(Team)
            .where(Team.reminder_time.like(f"{pattern}%"))
            .order_by(Team.created_at.asc())
        )
        return result.scalars().all()

    async def teams_due_for_deadline(
        self,
        hour: int | str,
        minute: int | str,
    ) -> Sequence[Team]:
        """Teams whose deadline falls in this minute."""
        pattern = tick_pattern(hour, minute)
        result = await self._session.execute(
            select(Team)
            .where(Team.deadline_time.like(f"{pattern}%"))
            .order_by(Team.created_at.asc())
        )
        return result.scalars().all()

    async def teams_due_for_reminder_at(self, instant: datetime) -> Sequence[Team]:
        """Teams whose local reminder time is ``instant`` in their own zone."""
        return await self._teams_due_at(Team.reminder_time, instant)

    async def teams_due_for_deadline_at(self, instant: datetime) -> Sequence[Team]:
        """Teams whose local deadline is ``instant`` in their own zone."""
        return await self._teams_due_at(Team.deadline_time, instant)

    async def _teams_due_at(self, column, instant: datetime) -> Sequence[Team]:
        zones = (await self._session.execute(select(Team.timezone).distinct())).scalars().all()

        clauses = []
        for tz_name in zones:
            try:
                local = now_in(tz_name, instant)
            except ConfigurationError:
                logger.warning(f"Skipping teams with unknown timezone {tz_name!r}")
                continue
            pattern = tick_pattern(local.hour, local.minute)
            clauses.append(and_(Team.timezone == tz_name, column.like(f"{pattern}%")))

        if not clauses:
            return []

        result = await self._session.execute(
            select(Team).where(or_(*clauses)).order_by(Team.created_at.asc())
        )
        return result.scalars().all()

    # =========================================================================
    # REMINDER RECORDS
    # =========================================================================

    async def get_reminder_record(self, team: Team, day: date) -> ReminderRecord | None:
        result = await self._session.execute(
            select(ReminderRecord)
            .where(
                ReminderRecord.team_id == team.id,
                ReminderRecord.scheduled_date == day,
            )
            .order_by(ReminderRecord.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def ensure_reminder_record(self, team: Team, day: date) -> ReminderRecord:
        """Get or create the (team, date) record. New records are pending."""
        existing = await self.get_reminder_record(team, day)
        if existing:
            return existing

        record = ReminderRecord(
            team_id=team.id,
            scheduled_date=day,
            status=ReminderStatus.PENDING,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def mark_reminder_outcome(
        self,
        team: Team,
        day: date,
        status: ReminderStatus,
        now: datetime | None = None,
    ) -> ReminderRecord:
        """Record a sent/failed outcome. ``sent`` stamps sent_at."""
        if status == ReminderStatus.PENDING:
            raise StandupError("A reminder outcome must be sent or failed")

        record = await self.ensure_reminder_record(team, day)
        record.status = status
        record.sent_at = (now or utcnow()) if status == ReminderStatus.SENT else None
        await self._session.flush()
        return record
