"""
Reminder Tick Job: one minute of the stand-up schedule.

Invoked once per minute, either by POST /api/reminders/check or by running
this module from cron:

    * * * * * standup-reminder-tick

For the tick's HH:MM it:
1. DMs reminders for every team whose reminder time matches
2. Posts the daily summary for every team whose deadline matches

Each team runs in its own transaction. A failing team is logged and
recorded in the result; the remaining teams still run.
"""

import asyncio
import logging
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import Settings, get_settings
from ..core.database import build_engine, build_session_factory
from ..models import ReminderStatus, Team
from ..services.errors import NotificationError
from ..services.notification_sink import NotificationSink, SlackSinkFactory
from ..services.posting import PostingOrchestrator
from ..services.scheduler import ReminderScheduler
from ..services.timeclock import now_in, tick_instant, tick_pattern, today_in

logger = logging.getLogger(__name__)

SinkFactory = Callable[[Team], NotificationSink]


@dataclass
class TickResult:
    """Summary of one tick."""
    tick: str
    reminded: int = 0
    posted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "ok" if self.ok else "error",
            "tick": self.tick,
            "reminded": self.reminded,
            "posted": self.posted,
            "skipped": self.skipped,
            "errors": self.errors,
        }


# =============================================================================
# ALERTING
# =============================================================================


async def send_alert(
    webhook_url: str | None,
    title: str,
    message: str,
    details: dict | None = None,
) -> None:
    """Log a tick failure and, when configured, post it to a Slack webhook."""
    log_message = f"[TICK ALERT] {title}: {message}"
    if details:
        log_message += f" | Details: {details}"
    logger.error(log_message)

    if not webhook_url:
        return

    text = f"🚨 *{title}*\n{message}"
    if details:
        text += "\n" + "\n".join(f"• *{k}*: {v}" for k, v in details.items())

    try:
        async with httpx.AsyncClient() as client:
            await client.post(webhook_url, json={"text": text}, timeout=10)
    except httpx.HTTPError as e:
        logger.error(f"Failed to send Slack alert: {e}")


# =============================================================================
# TICK
# =============================================================================


async def _remind_team(
    session: AsyncSession,
    team: Team,
    sink: NotificationSink,
    now: datetime,
    result: TickResult,
) -> None:
    scheduler = ReminderScheduler(session)
    day = today_in(team.timezone, now)

    record = await scheduler.ensure_reminder_record(team, day)
    if record.status == ReminderStatus.SENT:
        logger.info(f"Reminder already sent for team {team.slack_team_id} on {day}")
        result.skipped += 1
        return

    orchestrator = PostingOrchestrator(session, sink)
    try:
        outcome = await orchestrator.send_reminders(team, day)
    except NotificationError as e:
        await scheduler.mark_reminder_outcome(team, day, ReminderStatus.FAILED, now=now)
        result.errors.append(f"{team.slack_team_id}: reminder roster unavailable: {e}")
        logger.error(f"Failed to get members for {team.slack_team_id}: {e}")
        return

    await scheduler.mark_reminder_outcome(team, day, ReminderStatus.SENT, now=now)
    result.reminded += 1
    logger.info(
        f"Reminded {len(outcome.reminded)} users in team {team.slack_team_id} "
        f"({len(outcome.excused)} excused, {len(outcome.failed)} failed)"
    )


async def _post_team(
    session: AsyncSession,
    team: Team,
    sink: NotificationSink,
    now: datetime,
    result: TickResult,
) -> None:
    day = today_in(team.timezone, now)
    orchestrator = PostingOrchestrator(session, sink)
    await orchestrator.post_daily_summary(team, day)
    result.posted += 1


async def _run_for_teams(
    session_factory: async_sessionmaker[AsyncSession],
    sink_factory: SinkFactory,
    team_ids: list[UUID],
    flow: Callable,
    label: str,
    now: datetime,
    result: TickResult,
) -> None:
    for team_id in team_ids:
        try:
            async with session_factory() as session:
                async with session.begin():
                    team = await session.get(Team, team_id)
                    if team is None:
                        continue  # uninstalled since the lookup
                    if not team.standup_channel_id:
                        result.skipped += 1
                        continue
                    await flow(session, team, sink_factory(team), now, result)
        except Exception as e:
            # One team's failure must not stop the tick
            logger.error(f"{label} failed for team {team_id}: {e}")
            result.errors.append(f"{team_id}: {label} failed: {e}")


async def run_reminder_tick(
    session_factory: async_sessionmaker[AsyncSession],
    sink_factory: SinkFactory,
    hour: int | str,
    minute: int | str,
    now: datetime | None = None,
    clock_timezone: str = "UTC",
) -> TickResult:
    """
    Process one tick.

    The tick names a minute on ``clock_timezone``'s clock. That instant is
    converted to each team's zone both to decide whether the team is due
    and to pick its stand-up day.

    Args:
        session_factory: Creates a session per team
        sink_factory: Outbound messaging for a team
        hour, minute: The wall-clock minute being processed
        now: Current instant; the tick is taken on this instant's day
        clock_timezone: Zone the hour and minute are read in

    Returns:
        Counts of teams reminded, posted, skipped, and per-team errors
    """
    pattern = tick_pattern(hour, minute)
    instant = tick_instant(hour, minute, clock_timezone, now)
    result = TickResult(tick=pattern)

    async with session_factory() as session:
        scheduler = ReminderScheduler(session)
        reminder_ids = [t.id for t in await scheduler.teams_due_for_reminder_at(instant)]
        deadline_ids = [t.id for t in await scheduler.teams_due_for_deadline_at(instant)]

    await _run_for_teams(
        session_factory, sink_factory, reminder_ids, _remind_team, "reminder", instant, result
    )
    await _run_for_teams(
        session_factory, sink_factory, deadline_ids, _post_team, "summary", instant, result
    )

    logger.info(
        f"Tick {pattern}: {result.reminded} reminded, {result.posted} posted, "
        f"{result.skipped} skipped, {len(result.errors)} errors"
    )
    return result


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


async def _run_cli(settings: Settings, hour: int, minute: int) -> TickResult:
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)

    try:
        async with httpx.AsyncClient(timeout=settings.slack_timeout_seconds) as http_client:
            result = await run_reminder_tick(
                session_factory,
                SlackSinkFactory(settings, http_client),
                hour,
                minute,
                clock_timezone=settings.scheduler_timezone,
            )
    except Exception as e:
        await send_alert(
            settings.alert_webhook_url,
            title="Reminder Tick Crashed",
            message="The stand-up reminder tick failed before finishing.",
            details={"error": str(e), "traceback": traceback.format_exc()[-500:]},
        )
        raise
    finally:
        await engine.dispose()

    if not result.ok:
        await send_alert(
            settings.alert_webhook_url,
            title="Reminder Tick Completed with Errors",
            message=f"{len(result.errors)} team(s) failed at tick {result.tick}.",
            details={"errors": result.errors[:5]},
        )
    return result


def main():
    """CLI entry point for the reminder tick."""
    import argparse

    settings = get_settings()
    current = now_in(settings.scheduler_timezone)

    parser = argparse.ArgumentParser(description="Run one stand-up reminder tick")
    parser.add_argument("--hour", type=int, default=current.hour, help="Tick hour (0-23)")
    parser.add_argument("--minute", type=int, default=current.minute, help="Tick minute (0-59)")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        result = asyncio.run(_run_cli(settings, args.hour, args.minute))
        print(f"Tick completed: {result.to_dict()}")
    except Exception as e:
        print(f"Tick failed: {e}")
        exit(1)

    if not result.ok:
        exit(1)


if __name__ == "__main__":
    main()
