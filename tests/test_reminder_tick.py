"""
Tests for the reminder tick job.

These tests verify:
1. REMINDERS: due teams are reminded once per day
2. SUMMARIES: due teams get their daily summary thread
3. ISOLATION: one failing team does not stop the others
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select

from standup_bot.jobs.reminder_tick import TickResult, run_reminder_tick
from standup_bot.models import ReminderRecord, ReminderStatus, Submission, Team
from standup_bot.services.errors import InvalidTickError

from .conftest import FakeSink


NOW = datetime(2024, 1, 15, 19, 0, tzinfo=timezone.utc)
DAY = date(2024, 1, 15)


async def _install(session_factory, slack_team_id, channel="C1", tz_name="UTC", **kwargs):
    async with session_factory() as session:
        team = Team(
            slack_team_id=slack_team_id,
            bot_token=f"xoxb-{slack_team_id}",
            standup_channel_id=channel,
            timezone=tz_name,
            **kwargs,
        )
        session.add(team)
        await session.commit()
        return team


async def _reminder_record(session_factory, team):
    async with session_factory() as session:
        return await session.scalar(
            select(ReminderRecord).where(ReminderRecord.team_id == team.id)
        )


class TestReminderPhase:
    """Teams whose reminder time matches the tick."""

    async def test_reminds_and_marks_sent(self, session_factory):
        team = await _install(session_factory, "TA", reminder_time="19:00:00")
        sink = FakeSink(roster=["U1", "U2"])

        result = await run_reminder_tick(session_factory, lambda t: sink, 19, 0, now=NOW)

        assert result.ok
        assert result.reminded == 1
        assert [m.channel for m in sink.sent] == ["U1", "U2"]
        record = await _reminder_record(session_factory, team)
        assert record.status == ReminderStatus.SENT
        assert record.scheduled_date == DAY

    async def test_second_tick_same_day_is_skipped(self, session_factory):
        await _install(session_factory, "TA", reminder_time="19:00:00")
        sink = FakeSink(roster=["U1"])

        await run_reminder_tick(session_factory, lambda t: sink, 19, 0, now=NOW)
        second = await run_reminder_tick(session_factory, lambda t: sink, 19, 0, now=NOW)

        assert second.reminded == 0
        assert second.skipped == 1
        assert len(sink.sent) == 1

    async def test_roster_failure_marks_failed(self, session_factory):
        team = await _install(session_factory, "TA", reminder_time="19:00:00")
        sink = FakeSink(roster_fails=True)

        result = await run_reminder_tick(session_factory, lambda t: sink, 19, 0, now=NOW)

        assert not result.ok
        assert len(result.errors) == 1
        record = await _reminder_record(session_factory, team)
        assert record.status == ReminderStatus.FAILED

    async def test_team_without_channel_is_skipped(self, session_factory):
        await _install(session_factory, "TA", channel=None, reminder_time="19:00:00")
        sink = FakeSink(roster=["U1"])

        result = await run_reminder_tick(session_factory, lambda t: sink, 19, 0, now=NOW)

        assert result.ok
        assert result.skipped == 1
        assert sink.sent == []

    async def test_other_minutes_do_nothing(self, session_factory):
        await _install(session_factory, "TA", reminder_time="19:01:00")
        sink = FakeSink(roster=["U1"])

        result = await run_reminder_tick(session_factory, lambda t: sink, "19", "00", now=NOW)

        assert result.to_dict() == {
            "status": "ok",
            "tick": "19:00",
            "reminded": 0,
            "posted": 0,
            "skipped": 0,
            "errors": [],
        }


class TestSummaryPhase:
    """Teams whose deadline matches the tick."""

    async def test_posts_summary_and_marks_rows(self, session_factory):
        team = await _install(session_factory, "TA", deadline_time="20:00:00")
        async with session_factory() as session:
            session.add(Submission(
                team_id=team.id, slack_user_id="U1", content="Did X", date=DAY,
            ))
            await session.commit()
        sink = FakeSink()

        result = await run_reminder_tick(
            session_factory, lambda t: sink, 20, 0,
            now=datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc),
        )

        assert result.ok
        assert result.posted == 1
        assert [m.text for m in sink.sent[1:]] == ["*<@U1>*:\nDid X"]
        async with session_factory() as session:
            row = await session.scalar(select(Submission))
            assert row.posted_to_channel is True
            assert row.thread_ts == sink.sent[0].ts

    async def test_failing_team_does_not_stop_others(self, session_factory):
        await _install(session_factory, "TA", channel="C_BROKEN", deadline_time="20:00:00")
        await _install(session_factory, "TB", channel="C_OK", deadline_time="20:00:00")
        sink = FakeSink(fail_channels={"C_BROKEN"})

        result = await run_reminder_tick(session_factory, lambda t: sink, 20, 0, now=NOW)

        assert result.posted == 1
        assert len(result.errors) == 1
        assert result.to_dict()["status"] == "error"
        assert [m.channel for m in sink.sent] == ["C_OK"]


class TestTickValidation:
    async def test_invalid_tick(self, session_factory):
        with pytest.raises(InvalidTickError):
            await run_reminder_tick(session_factory, lambda t: FakeSink(), 25, 0)

    def test_result_ok(self):
        assert TickResult(tick="19:00").ok
        assert not TickResult(tick="19:00", errors=["boom"]).ok


class TestTeamClock:
    """Each team is matched and dated on its own local clock."""

    async def test_tokyo_deadline_posts_that_days_summary(self, session_factory):
        """20:00 in Tokyo is 11:00 UTC; the summary is for the Tokyo date."""
        team = await _install(
            session_factory, "TT", tz_name="Asia/Tokyo", deadline_time="20:00:00"
        )
        async with session_factory() as session:
            session.add(Submission(
                team_id=team.id, slack_user_id="U1", content="fixed bug", date=DAY,
            ))
            await session.commit()
        sink = FakeSink()

        result = await run_reminder_tick(
            session_factory, lambda t: sink, 11, 0,
            now=datetime(2024, 1, 15, 11, 0, tzinfo=timezone.utc),
        )

        assert result.ok
        assert result.posted == 1
        assert "Monday, January 15, 2024" in sink.sent[0].text
        assert [m.text for m in sink.sent[1:]] == ["*<@U1>*:\nfixed bug"]

    async def test_utc_wall_clock_does_not_match_tokyo_deadline(self, session_factory):
        """At 20:00 UTC it is already 05:00 the next day in Tokyo."""
        await _install(session_factory, "TT", tz_name="Asia/Tokyo", deadline_time="20:00:00")
        sink = FakeSink()

        result = await run_reminder_tick(
            session_factory, lambda t: sink, 20, 0,
            now=datetime(2024, 1, 15, 20, 0, tzinfo=timezone.utc),
        )

        assert result.posted == 0
        assert sink.sent == []

    async def test_evening_reminder_dated_on_local_day(self, session_factory):
        """19:00 in New York is midnight UTC; the record is for the New York date."""
        team = await _install(
            session_factory, "TN", tz_name="America/New_York", reminder_time="19:00:00"
        )
        sink = FakeSink(roster=["U1"])

        result = await run_reminder_tick(
            session_factory, lambda t: sink, 0, 0,
            now=datetime(2024, 1, 16, 0, 0, tzinfo=timezone.utc),
        )

        assert result.reminded == 1
        assert [m.channel for m in sink.sent] == ["U1"]
        record = await _reminder_record(session_factory, team)
        assert record.scheduled_date == date(2024, 1, 15)

    async def test_tick_read_on_configured_clock(self, session_factory):
        """A 20:00 Tokyo tick reaches a UTC team whose deadline is 11:00."""
        await _install(session_factory, "TU", deadline_time="11:00:00")
        sink = FakeSink()

        result = await run_reminder_tick(
            session_factory, lambda t: sink, 20, 0,
            now=datetime(2024, 1, 15, 11, 0, tzinfo=timezone.utc),
            clock_timezone="Asia/Tokyo",
        )

        assert result.posted == 1
        assert "Monday, January 15, 2024" in sink.sent[0].text
