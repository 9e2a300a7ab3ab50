"""
Event handling: routes inbound chat events to the stand-up services.

Handlers return the text they replied with (useful to callers and tests)
or None when the event was ignored. Malformed events are dropped
silently. Anything that goes wrong while serving a user ends in a
plain-text apology rather than a raw error.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import Settings
from ..core.security import encrypt_token
from ..models import Team, utcnow
from .commands import (
    CommandType,
    MentionCommand,
    UserCommand,
    classify_direct_message,
    parse_mention_command,
)
from .errors import NotificationError
from .messages import StandupMessages
from .notification_sink import NotificationSink
from .posting import PostingOrchestrator
from .status import StatusEngine, missing_from_roster
from .submissions import SubmissionAggregator
from .teams import InstallationInput, TeamDirectory
from .timeclock import is_late, today_in

logger = logging.getLogger(__name__)

SinkFactory = Callable[[Team], NotificationSink]


class StandupEventHandler:
    """Inbound command surface: DMs, mentions, install and uninstall."""

    def __init__(
        self,
        session: AsyncSession,
        sink_factory: SinkFactory,
        settings: Settings,
    ):
        self._session = session
        self._sink_factory = sink_factory
        self._settings = settings
        self._directory = TeamDirectory(session)
        self._aggregator = SubmissionAggregator(session)
        self._status = StatusEngine(session)

    async def _reply(self, sink: NotificationSink, channel: str, text: str) -> str:
        try:
            await sink.post_message(channel, text)
        except NotificationError as e:
            logger.error(f"Failed to reply in {channel}: {e}")
        return text

    # =========================================================================
    # DIRECT MESSAGES
    # =========================================================================

    async def direct_message(
        self,
        slack_team_id: str | None,
        slack_user_id: str | None,
        text: str | None,
        channel_id: str | None = None,
        sent_at: datetime | None = None,
    ) -> str | None:
        if not slack_team_id or not slack_user_id or not text or not text.strip():
            return None

        team = await self._directory.get_team(slack_team_id)
        if not team:
            # Without a team there is no token to reply with.
            logger.warning(f"Direct message for unknown team {slack_team_id}")
            return StandupMessages.NOT_CONFIGURED

        sink = self._sink_factory(team)
        reply_channel = channel_id or slack_user_id
        command = classify_direct_message(text)

        try:
            reply = await self._handle_user_command(team, sink, slack_user_id, command, sent_at)
        except SQLAlchemyError as e:
            logger.error(f"Failed to handle DM from {slack_user_id} in team {slack_team_id}: {e}")
            await self._session.rollback()
            reply = StandupMessages.SOMETHING_WENT_WRONG

        return await self._reply(sink, reply_channel, reply)

    async def _handle_user_command(
        self,
        team: Team,
        sink: NotificationSink,
        slack_user_id: str,
        command: UserCommand,
        sent_at: datetime | None,
    ) -> str:
        now = sent_at or utcnow()
        today = today_in(team.timezone, now)

        if command.type == CommandType.SUBMIT:
            user_name = await sink.get_user_name(slack_user_id)
            await self._aggregator.record_submission(
                team,
                slack_user_id,
                command.text or "",
                user_name=user_name,
                date=today,
                is_late=is_late(now, team.deadline_time, team.timezone),
                submitted_at=now,
            )
            return StandupMessages.ACK

        elif command.type == CommandType.SKIP:
            await self._directory.set_skip(team, slack_user_id, today)
            return StandupMessages.skip_ack()

        elif command.type == CommandType.VACATION:
            try:
                until = date.fromisoformat(command.date or "")
            except ValueError:
                return StandupMessages.vacation_invalid(command.date or "")
            await self._directory.set_leave(team, slack_user_id, until)
            return StandupMessages.vacation_ack(command.date)

        elif command.type == CommandType.DONE:
            submissions = await self._aggregator.list_for_user_and_date(team, slack_user_id, today)
            return StandupMessages.done_ack(len(submissions))

        elif command.type == CommandType.STATUS:
            submissions = await self._aggregator.list_for_user_and_date(team, slack_user_id, today)
            return StandupMessages.own_status(len(submissions), team.deadline_time)

        elif command.type == CommandType.HELP:
            return StandupMessages.dm_help()

        raise ValueError(f"Unhandled command type: {command.type}")

    # =========================================================================
    # MENTIONS
    # =========================================================================

    async def mention(
        self,
        slack_team_id: str | None,
        slack_user_id: str | None,
        channel_id: str | None,
        text: str | None,
        now: datetime | None = None,
    ) -> str | None:
        if not slack_team_id or not channel_id:
            return None

        team = await self._directory.get_team(slack_team_id)
        if not team:
            logger.warning(f"Mention for unknown team {slack_team_id}")
            return StandupMessages.NOT_CONFIGURED

        sink = self._sink_factory(team)
        command = parse_mention_command(text or "")
        today = today_in(team.timezone, now)

        try:
            if command == MentionCommand.STATUS:
                reply = await self._team_status(team, sink, today)
            elif command == MentionCommand.HELP:
                reply = StandupMessages.channel_help()
            elif command == MentionCommand.CONFIG:
                reply = StandupMessages.config(team)
            elif command == MentionCommand.DEMO_REMINDER:
                reply = await self._demo_reminder(team, sink, today)
            elif command == MentionCommand.DEMO_STANDUPS:
                reply = await self._demo_standups(team, sink, today)
            else:
                reply = StandupMessages.UNKNOWN_MENTION
        except (SQLAlchemyError, NotificationError) as e:
            logger.error(f"Mention command {command.value} failed for team {slack_team_id}: {e}")
            if isinstance(e, SQLAlchemyError):
                await self._session.rollback()
            reply = StandupMessages.SOMETHING_WENT_WRONG

        return await self._reply(sink, channel_id, reply)

    async def _team_status(self, team: Team, sink: NotificationSink, today: date) -> str:
        status = await self._status.submission_status(team, today)

        roster: list[str] = []
        if team.standup_channel_id:
            try:
                roster = await sink.list_members(team.standup_channel_id)
            except NotificationError as e:
                logger.warning(f"Could not fetch roster for team {team.slack_team_id}: {e}")

        missing = missing_from_roster(roster, status.submitted_users)
        return StandupMessages.team_status(today, status, missing)

    async def _demo_reminder(self, team: Team, sink: NotificationSink, today: date) -> str:
        if not team.standup_channel_id:
            return StandupMessages.NO_CHANNEL

        orchestrator = PostingOrchestrator(self._session, sink)
        try:
            result = await orchestrator.send_reminders(
                team, today, text=StandupMessages.DEMO_PREFIX + StandupMessages.REMINDER
            )
        except NotificationError as e:
            logger.error(f"Demo reminder roster fetch failed for team {team.slack_team_id}: {e}")
            return StandupMessages.ROSTER_UNAVAILABLE
        return StandupMessages.demo_reminders_sent(result.reminded)

    async def _demo_standups(self, team: Team, sink: NotificationSink, today: date) -> str:
        if not team.standup_channel_id:
            return StandupMessages.NO_CHANNEL

        if not await self._aggregator.list_for_date(team, today):
            return StandupMessages.demo_posted(0, team.standup_channel_id)

        orchestrator = PostingOrchestrator(self._session, sink)
        result = await orchestrator.post_daily_summary(
            team, today, prefix=StandupMessages.DEMO_PREFIX
        )
        return StandupMessages.demo_posted(result.posted, team.standup_channel_id)

    # =========================================================================
    # INSTALLATION LIFECYCLE
    # =========================================================================

    async def installed(
        self,
        slack_team_id: str | None,
        team_name: str | None,
        bot_token: str | None,
        installed_by: str | None = None,
        bot_user_id: str | None = None,
    ) -> Team | None:
        if not slack_team_id or not bot_token:
            logger.error("Missing required installation data")
            return None

        return await self._directory.upsert_installation(InstallationInput(
            slack_team_id=slack_team_id,
            bot_token=encrypt_token(bot_token, self._settings),
            team_name=team_name,
            bot_user_id=bot_user_id,
            installed_by=installed_by,
        ))

    async def uninstalled(self, slack_team_id: str | None) -> bool:
        if not slack_team_id:
            return False
        return await self._directory.delete_team(slack_team_id)
