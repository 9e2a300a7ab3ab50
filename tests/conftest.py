"""
Shared fixtures: an in-memory SQLite database per test, installed teams,
and an in-memory NotificationSink that records everything it is asked to
send.
"""

import os

# Must be set before standup_bot.core builds its module-level engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "development"

from dataclasses import dataclass, field
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from standup_bot.core.config import Settings
from standup_bot.core.database import build_session_factory, enable_sqlite_foreign_keys
from standup_bot.models import Base, Team
from standup_bot.services.errors import NotificationError
from standup_bot.services.notification_sink import NotificationSink


# =============================================================================
# NOTIFICATION SINK FAKE
# =============================================================================


@dataclass
class SentMessage:
    channel: str
    text: str
    thread_ts: str | None
    ts: str


@dataclass
class FakeSink(NotificationSink):
    """In-memory sink. Failures are configured per channel (or user DM)."""

    roster: list[str] = field(default_factory=list)
    names: dict[str, str] = field(default_factory=dict)
    fail_channels: set[str] = field(default_factory=set)
    fail_texts: set[str] = field(default_factory=set)
    roster_fails: bool = False
    sent: list[SentMessage] = field(default_factory=list)
    _counter: int = 0

    async def post_message(self, channel, text, thread_ts=None):
        if channel in self.fail_channels or any(t in text for t in self.fail_texts):
            raise NotificationError(f"channel_not_found: {channel}")
        self._counter += 1
        ts = f"1700000000.{self._counter:06d}"
        self.sent.append(SentMessage(channel, text, thread_ts, ts))
        return ts

    async def list_members(self, channel):
        if self.roster_fails:
            raise NotificationError("missing_scope")
        return list(self.roster)

    async def get_user_name(self, user_id):
        return self.names.get(user_id)

    def to(self, channel: str) -> list[SentMessage]:
        return [m for m in self.sent if m.channel == channel]

    def in_thread(self, thread_ts: str) -> list[SentMessage]:
        return [m for m in self.sent if m.thread_ts == thread_ts]


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="development",
        database_url="sqlite+aiosqlite://",
        slack_client_id="client-id",
        slack_client_secret="client-secret",
        slack_signing_secret="signing-secret",
        cron_secret=None,
        encryption_key=None,
        scheduler_timezone="UTC",
    )


# =============================================================================
# TEAMS
# =============================================================================


@pytest.fixture
async def team(session) -> Team:
    """An installed, configured team on UTC with the default times."""
    team = Team(
        slack_team_id="T001",
        name="Acme",
        bot_token="xoxb-acme",
        bot_user_id="UBOT",
        standup_channel_id="C_STANDUP",
        timezone="UTC",
    )
    session.add(team)
    await session.commit()
    return team


@pytest.fixture
async def other_team(session) -> Team:
    team = Team(
        slack_team_id="T002",
        name="Globex",
        bot_token="xoxb-globex",
        standup_channel_id="C_OTHER",
        timezone="UTC",
    )
    session.add(team)
    await session.commit()
    return team


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def today() -> date:
    return date(2024, 1, 15)
