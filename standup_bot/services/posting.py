"""
Posting Orchestrator: the deadline summary and the reminder fan-out.

Summary flow for a team and date:
1. Load the day's submissions; none -> one "no stand-ups" message
2. Post a header message and keep its thread handle
3. Enumerate contributing users in first-seen (creation) order
4. One threaded reply per user with their merged update
5. One bulk mark-as-posted for the users whose reply went out
6. Best-effort "Waiting on" reply for roster members who did not submit

Each user's reply is independent: a failure is logged and the loop moves
on. A roster failure only skips step 6.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Team
from .errors import ConfigurationError, NotificationError
from .messages import StandupMessages
from .notification_sink import NotificationSink
from .status import missing_from_roster, status_from_submissions
from .submissions import SubmissionAggregator
from .teams import TeamDirectory

logger = logging.getLogger(__name__)


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class PostingResult:
    """Outcome of a daily summary."""
    posted: int = 0  # user replies delivered
    users_with_submissions: int = 0
    thread_ts: str | None = None
    missing_users: list[str] = field(default_factory=list)
    failed_users: list[str] = field(default_factory=list)


@dataclass
class ReminderResult:
    """Outcome of a reminder fan-out."""
    reminded: list[str] = field(default_factory=list)
    excused: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


# =============================================================================
# POSTING ORCHESTRATOR
# =============================================================================


class PostingOrchestrator:
    """Drives the summary and reminder flows against a NotificationSink."""

    def __init__(self, session: AsyncSession, sink: NotificationSink):
        self._aggregator = SubmissionAggregator(session)
        self._directory = TeamDirectory(session)
        self._sink = sink

    @staticmethod
    def _require_channel(team: Team) -> str:
        if not team.standup_channel_id:
            raise ConfigurationError(f"Team {team.slack_team_id} has no stand-up channel")
        return team.standup_channel_id

    async def post_daily_summary(
        self,
        team: Team,
        day: date,
        prefix: str = "",
    ) -> PostingResult:
        channel = self._require_channel(team)
        submissions = await self._aggregator.list_for_date(team, day)

        if not submissions:
            await self._sink.post_message(channel, prefix + StandupMessages.no_submissions(day))
            logger.info(f"No stand-ups for team {team.slack_team_id} on {day}")
            return PostingResult()

        thread_ts = await self._sink.post_message(
            channel, prefix + StandupMessages.summary_header(day)
        )
        status = status_from_submissions(submissions)
        late_users = status.late_set
        result = PostingResult(
            users_with_submissions=len(status.submitted_users),
            thread_ts=thread_ts,
        )

        posted_ids: list[UUID] = []
        for user_id in status.submitted_users:
            merged = await self._aggregator.merge_for_user(team, user_id, day)
            try:
                await self._sink.post_message(
                    channel,
                    StandupMessages.user_update(user_id, merged, user_id in late_users),
                    thread_ts=thread_ts,
                )
            except NotificationError as e:
                logger.error(f"Failed to post stand-up for {user_id} in team {team.slack_team_id}: {e}")
                result.failed_users.append(user_id)
                continue

            result.posted += 1
            posted_ids.extend(s.id for s in submissions if s.slack_user_id == user_id)

        await self._aggregator.mark_posted(posted_ids, thread_ts)

        try:
            roster = await self._sink.list_members(channel)
        except NotificationError as e:
            logger.warning(f"Skipping missing-user reply for team {team.slack_team_id}: {e}")
            return result

        result.missing_users = missing_from_roster(roster, status.submitted_users)
        if result.missing_users:
            try:
                await self._sink.post_message(
                    channel,
                    StandupMessages.waiting_on(result.missing_users),
                    thread_ts=thread_ts,
                )
            except NotificationError as e:
                logger.error(f"Failed to post waiting-on reply for team {team.slack_team_id}: {e}")

        logger.info(
            f"Posted {result.posted}/{result.users_with_submissions} stand-ups "
            f"for team {team.slack_team_id} on {day}"
        )
        return result

    async def send_reminders(
        self,
        team: Team,
        day: date,
        text: str = StandupMessages.REMINDER,
    ) -> ReminderResult:
        """
        DM every roster member who has not submitted and is not excused.

        Raises NotificationError when the roster cannot be fetched; per-user
        DM failures are logged and collected.
        """
        channel = self._require_channel(team)
        roster = await self._sink.list_members(channel)

        submissions = await self._aggregator.list_for_date(team, day)
        submitted = {s.slack_user_id for s in submissions}
        excused = await self._directory.excused_users(team, day)

        result = ReminderResult()
        for user_id in missing_from_roster(roster, submitted):
            if user_id in excused:
                result.excused.append(user_id)
                continue
            try:
                await self._sink.post_message(user_id, text)
                result.reminded.append(user_id)
            except NotificationError as e:
                logger.error(f"Failed to send reminder to {user_id}: {e}")
                result.failed.append(user_id)

        return result
