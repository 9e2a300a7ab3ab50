"""Team Router: configuration and daily status for an installed workspace.

These routes share the cron secret guard; they are operator tools, not
end-user surfaces.
"""

import logging
from datetime import date as date_type

from fastapi import APIRouter, Depends, HTTPException, status

from ..core.dependencies import SessionDep, SinkFactoryDep, require_cron_secret
from ..models import Team
from ..schemas import TeamConfigResponse, TeamConfigUpdate, TeamStatusResponse
from ..services.errors import ConfigurationError, NotificationError, TeamNotFoundError
from ..services.status import StatusEngine, missing_from_roster
from ..services.teams import TeamConfigInput, TeamDirectory
from ..services.timeclock import today_in

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/teams",
    tags=["teams"],
    dependencies=[Depends(require_cron_secret)],
)


async def _require_team(directory: TeamDirectory, slack_team_id: str) -> Team:
    try:
        return await directory.require_team(slack_team_id)
    except TeamNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.get("/{slack_team_id}/config", response_model=TeamConfigResponse)
async def get_team_config(slack_team_id: str, session: SessionDep) -> TeamConfigResponse:
    team = await _require_team(TeamDirectory(session), slack_team_id)
    return TeamConfigResponse.model_validate(team)


@router.put("/{slack_team_id}/config", response_model=TeamConfigResponse)
async def update_team_config(
    slack_team_id: str,
    update: TeamConfigUpdate,
    session: SessionDep,
) -> TeamConfigResponse:
    """Partially update channel, reminder time, deadline and timezone."""
    directory = TeamDirectory(session)
    team = await _require_team(directory, slack_team_id)

    try:
        team = await directory.update_config(team, TeamConfigInput(
            standup_channel_id=update.standup_channel_id,
            reminder_time=update.reminder_time,
            deadline_time=update.deadline_time,
            timezone=update.timezone,
        ))
    except ConfigurationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    logger.info(f"Configuration updated for team {slack_team_id}")
    return TeamConfigResponse.model_validate(team)


@router.get("/{slack_team_id}/status", response_model=TeamStatusResponse)
async def get_team_status(
    slack_team_id: str,
    session: SessionDep,
    sink_factory: SinkFactoryDep,
    date: date_type | None = None,
) -> TeamStatusResponse:
    """
    Who has submitted for a day and who has not.

    ``date`` defaults to today in the team's timezone. Missing users come
    from the live channel roster and are empty when it is unavailable.
    """
    team = await _require_team(TeamDirectory(session), slack_team_id)
    day = date or today_in(team.timezone)

    breakdown = await StatusEngine(session).submission_status(team, day)

    roster: list[str] = []
    roster_available = False
    if team.standup_channel_id:
        try:
            roster = await sink_factory(team).list_members(team.standup_channel_id)
            roster_available = True
        except NotificationError as e:
            logger.warning(f"Could not fetch roster for team {slack_team_id}: {e}")

    return TeamStatusResponse(
        date=day,
        submitted_users=breakdown.submitted_users,
        late_users=breakdown.late_users,
        missing_users=missing_from_roster(roster, breakdown.submitted_users),
        display_names=breakdown.display_names,
        roster_available=roster_available,
    )
