"""
Status Engine: who has submitted, who was late, who is missing.

The roster (channel membership) is always supplied by the caller, so the
engine never talks to the chat platform.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Submission, Team
from .submissions import SubmissionAggregator
from .timeclock import today_in


@dataclass
class SubmissionStatus:
    """Per-day breakdown. ``submitted_users`` keeps first-seen order."""
    submitted_users: list[str] = field(default_factory=list)
    late_users: list[str] = field(default_factory=list)
    display_names: dict[str, str] = field(default_factory=dict)

    @property
    def submitted_set(self) -> set[str]:
        return set(self.submitted_users)

    @property
    def late_set(self) -> set[str]:
        return set(self.late_users)

    @property
    def on_time_users(self) -> list[str]:
        late = self.late_set
        return [u for u in self.submitted_users if u not in late]


def status_from_submissions(submissions: Iterable[Submission]) -> SubmissionStatus:
    """
    Deduplicate submissions by author.

    The first row seen for a user decides both the display name and the
    late flag; later rows from the same user are ignored here.
    """
    status = SubmissionStatus()
    seen: set[str] = set()

    for submission in submissions:
        user_id = submission.slack_user_id
        if user_id in seen:
            continue
        seen.add(user_id)
        status.submitted_users.append(user_id)

        if submission.user_name:
            status.display_names[user_id] = submission.user_name
        if submission.is_late:
            status.late_users.append(user_id)

    return status


def missing_from_roster(roster: Sequence[str], submitted: Iterable[str]) -> list[str]:
    """Roster minus submitted, in roster order, without duplicates."""
    submitted_set = set(submitted)
    missing: list[str] = []
    for user_id in roster:
        if user_id not in submitted_set and user_id not in missing:
            missing.append(user_id)
    return missing


class StatusEngine:
    """Computes the submission and absence breakdown for a team and date."""

    def __init__(self, session: AsyncSession):
        self._aggregator = SubmissionAggregator(session)

    async def submission_status(self, team: Team, day: date) -> SubmissionStatus:
        submissions = await self._aggregator.list_for_date(team, day)
        return status_from_submissions(submissions)

    async def missing_users(
        self,
        team: Team,
        day: date,
        roster_user_ids: Sequence[str],
    ) -> list[str]:
        if not roster_user_ids:
            return []
        status = await self.submission_status(team, day)
        return missing_from_roster(roster_user_ids, status.submitted_users)

    async def has_submitted_today(
        self,
        team: Team,
        slack_user_id: str,
        now: datetime | None = None,
    ) -> bool:
        today = today_in(team.timezone, now)
        submissions = await self._aggregator.list_for_user_and_date(team, slack_user_id, today)
        return len(submissions) > 0
