"""Reminder Router: the once-a-minute tick, called by an external cron."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ..core.dependencies import (
    SessionFactoryDep,
    SettingsDep,
    SinkFactoryDep,
    require_cron_secret,
)
from ..jobs.reminder_tick import run_reminder_tick
from ..schemas import TickRequest, TickResponse
from ..services.errors import InvalidTickError
from ..services.timeclock import now_in

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/reminders",
    tags=["reminders"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post(
    "/check",
    response_model=TickResponse,
    responses={500: {"model": TickResponse}},
)
async def check_reminders(
    settings: SettingsDep,
    session_factory: SessionFactoryDep,
    sink_factory: SinkFactoryDep,
    request: Annotated[TickRequest | None, Body()] = None,
):
    """
    Run one tick.

    Hour and minute default to the current time in the scheduler
    timezone. Responds 500 with the same body when any team failed.
    """
    current = now_in(settings.scheduler_timezone)
    hour = request.hour if request and request.hour is not None else current.hour
    minute = request.minute if request and request.minute is not None else current.minute

    try:
        result = await run_reminder_tick(
            session_factory,
            sink_factory,
            hour,
            minute,
            clock_timezone=settings.scheduler_timezone,
        )
    except InvalidTickError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    body = TickResponse(**result.to_dict())
    if not result.ok:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(),
        )
    return body
