"""
Team Directory: installed workspaces, their configuration, and members.

Installation is an upsert keyed by the Slack team id, so a reinstall
refreshes the credential instead of creating a second team. Deleting a
team removes its submissions, reminder records and members through
ON DELETE CASCADE.
"""

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Member, Team
from .errors import TeamNotFoundError
from .timeclock import get_zone, normalize_time

logger = logging.getLogger(__name__)


@dataclass
class InstallationInput:
    """What the OAuth flow learns about an installation."""
    slack_team_id: str
    bot_token: str
    team_name: str | None = None
    bot_user_id: str | None = None
    installed_by: str | None = None


@dataclass
class TeamConfigInput:
    """Partial configuration update; ``None`` leaves a value unchanged."""
    standup_channel_id: str | None = None
    reminder_time: str | None = None
    deadline_time: str | None = None
    timezone: str | None = None
    name: str | None = None


class TeamDirectory:
    """Lookup and lifecycle of installed teams."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # TEAMS
    # =========================================================================

    async def get_team(self, slack_team_id: str) -> Team | None:
        result = await self._session.execute(
            select(Team).where(Team.slack_team_id == slack_team_id)
        )
        return result.scalar_one_or_none()

    async def get_team_by_id(self, team_id: UUID) -> Team | None:
        return await self._session.get(Team, team_id)

    async def require_team(self, slack_team_id: str) -> Team:
        team = await self.get_team(slack_team_id)
        if not team:
            raise TeamNotFoundError(f"No installation for team {slack_team_id}")
        return team

    async def upsert_installation(self, data: InstallationInput) -> Team:
        """Create the team on first install; refresh credentials on reinstall."""
        team = await self.get_team(data.slack_team_id)

        if team:
            team.bot_token = data.bot_token
            team.bot_user_id = data.bot_user_id
            if data.team_name:
                team.name = data.team_name
            logger.info(f"App reinstalled for workspace: {team.name} ({team.slack_team_id})")
        else:
            team = Team(
                slack_team_id=data.slack_team_id,
                name=data.team_name,
                bot_token=data.bot_token,
                bot_user_id=data.bot_user_id,
                installed_by=data.installed_by,
            )
            self._session.add(team)
            logger.info(f"App installed for workspace: {data.team_name} ({data.slack_team_id})")

        await self._session.flush()
        return team

    async def update_config(self, team: Team, config: TeamConfigInput) -> Team:
        """
        Apply a partial configuration update.

        Times are normalised to HH:MM:SS and the timezone must be a known
        IANA zone; a bad value raises ConfigurationError before anything
        is written.
        """
        reminder_time = normalize_time(config.reminder_time) if config.reminder_time else None
        deadline_time = normalize_time(config.deadline_time) if config.deadline_time else None
        if config.timezone:
            get_zone(config.timezone)

        if config.standup_channel_id:
            team.standup_channel_id = config.standup_channel_id
        if reminder_time:
            team.reminder_time = reminder_time
        if deadline_time:
            team.deadline_time = deadline_time
        if config.timezone:
            team.timezone = config.timezone
        if config.name:
            team.name = config.name

        await self._session.flush()
        return team

    async def delete_team(self, slack_team_id: str) -> bool:
        """Remove a team and, by cascade, everything it owns."""
        result = await self._session.execute(
            delete(Team).where(Team.slack_team_id == slack_team_id)
        )
        await self._session.flush()
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"App uninstalled from workspace: {slack_team_id}")
        return deleted

    # =========================================================================
    # MEMBERS
    # =========================================================================

    async def get_member(self, team: Team, slack_user_id: str) -> Member | None:
        result = await self._session.execute(
            select(Member).where(
                Member.team_id == team.id,
                Member.slack_user_id == slack_user_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_or_create_member(
        self,
        team: Team,
        slack_user_id: str,
        user_name: str | None = None,
    ) -> Member:
        member = await self.get_member(team, slack_user_id)
        if not member:
            member = Member(team_id=team.id, slack_user_id=slack_user_id)
            self._session.add(member)
        if user_name:
            member.user_name = user_name
        return member

    async def set_leave(
        self,
        team: Team,
        slack_user_id: str,
        until: date,
        user_name: str | None = None,
    ) -> Member:
        member = await self._get_or_create_member(team, slack_user_id, user_name)
        member.leave_until = until
        await self._session.flush()
        return member

    async def set_skip(
        self,
        team: Team,
        slack_user_id: str,
        day: date,
        user_name: str | None = None,
    ) -> Member:
        member = await self._get_or_create_member(team, slack_user_id, user_name)
        member.skipped_on = day
        await self._session.flush()
        return member

    async def excused_users(self, team: Team, day: date) -> set[str]:
        """Users on leave or skipping ``day``; they get no reminder DM."""
        result = await self._session.execute(
            select(Member).where(Member.team_id == team.id)
        )
        return {m.slack_user_id for m in result.scalars().all() if m.is_excused_on(day)}
