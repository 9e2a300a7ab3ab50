"""
Submission Aggregator: raw stand-up messages and their per-day merge.

Every inbound message is appended as its own row. A user's update for a
day is a projection over those rows, computed on read:
- rows are ordered by created_at ascending (creation order)
- contents are joined by a blank line
- re-running the merge without new rows yields identical text
"""

from collections.abc import Sequence
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Submission, Team, utcnow
from .timeclock import today_in

MERGE_SEPARATOR = "\n\n"


class SubmissionAggregator:
    """Records submissions and merges a user's messages for a day."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def record_submission(
        self,
        team: Team,
        slack_user_id: str,
        content: str,
        user_name: str | None = None,
        date: date | None = None,
        is_late: bool = False,
        submitted_at: datetime | None = None,
    ) -> Submission:
        """
        Append one Submission row. Never merges with earlier rows.

        ``date`` defaults to today in the team's timezone. ``is_late`` is the
        caller's call (see timeclock.is_late).
        """
        submission = Submission(
            team_id=team.id,
            slack_user_id=slack_user_id,
            user_name=user_name,
            content=content,
            date=date or today_in(team.timezone, submitted_at),
            is_late=is_late,
            posted_to_channel=False,
            created_at=submitted_at or utcnow(),
        )
        self._session.add(submission)
        await self._session.flush()
        return submission

    async def list_for_date(self, team: Team, day: date) -> Sequence[Submission]:
        result = await self._session.execute(
            select(Submission)
            .where(Submission.team_id == team.id, Submission.date == day)
            .order_by(Submission.created_at.asc())
        )
        return result.scalars().all()

    async def list_unposted(self, team: Team, day: date) -> Sequence[Submission]:
        result = await self._session.execute(
            select(Submission)
            .where(
                Submission.team_id == team.id,
                Submission.date == day,
                Submission.posted_to_channel.is_(False),
            )
            .order_by(Submission.created_at.asc())
        )
        return result.scalars().all()

    async def list_for_user_and_date(
        self,
        team: Team,
        slack_user_id: str,
        day: date,
    ) -> Sequence[Submission]:
        result = await self._session.execute(
            select(Submission)
            .where(
                Submission.team_id == team.id,
                Submission.slack_user_id == slack_user_id,
                Submission.date == day,
            )
            .order_by(Submission.created_at.asc())
        )
        return result.scalars().all()

    async def merge_for_user(self, team: Team, slack_user_id: str, day: date) -> str:
        """Concatenate a user's submissions for the day, oldest first."""
        submissions = await self.list_for_user_and_date(team, slack_user_id, day)
        return MERGE_SEPARATOR.join(s.content for s in submissions)

    async def mark_posted(self, submission_ids: Sequence[UUID], thread_ts: str) -> int:
        """Flag submissions as posted in one UPDATE. Returns rows touched."""
        if not submission_ids:
            return 0

        result = await self._session.execute(
            update(Submission)
            .where(Submission.id.in_(list(submission_ids)))
            .values(posted_to_channel=True, thread_ts=thread_ts)
            .execution_options(synchronize_session="fetch")
        )
        await self._session.flush()
        return result.rowcount
