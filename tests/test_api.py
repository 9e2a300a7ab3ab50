"""
API tests through httpx.AsyncClient and ASGITransport.

Database, settings and the outbound sink are swapped in with
dependency overrides.
"""

import hashlib
import hmac
import json
import time
from datetime import date
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from httpx import ASGITransport
from sqlalchemy import select

from standup_bot.core.config import get_settings
from standup_bot.core.database import get_session
from standup_bot.core.dependencies import get_session_factory, get_sink_factory
from standup_bot.core.security import make_oauth_state
from standup_bot.main import app
from standup_bot.models import Submission, Team


def _signed_headers(secret: str, body: bytes) -> dict[str, str]:
    ts = str(int(time.time()))
    base = f"v0:{ts}:{body.decode()}".encode()
    return {
        "X-Slack-Request-Timestamp": ts,
        "X-Slack-Signature": "v0=" + hmac.new(secret.encode(), base, hashlib.sha256).hexdigest(),
        "Content-Type": "application/json",
    }


@pytest.fixture
async def client(session_factory, settings, sink):
    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_sink_factory] = lambda: (lambda team: sink)

    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestSlackEvents:
    """POST /slack/events"""

    async def test_url_verification(self, client, settings):
        body = json.dumps({"type": "url_verification", "challenge": "abc123"}).encode()

        response = await client.post(
            "/slack/events", content=body,
            headers=_signed_headers(settings.slack_signing_secret, body),
        )

        assert response.status_code == 200
        assert response.json() == {"challenge": "abc123"}

    async def test_bad_signature_is_rejected(self, client):
        body = b'{"type": "url_verification", "challenge": "abc123"}'

        response = await client.post(
            "/slack/events", content=body, headers=_signed_headers("wrong-secret", body)
        )

        assert response.status_code == 401

    async def test_missing_signature_is_rejected(self, client):
        response = await client.post("/slack/events", content=b"{}")
        assert response.status_code == 401

    async def test_dm_is_recorded(self, client, settings, session_factory, team, sink):
        body = json.dumps({
            "type": "event_callback",
            "team_id": "T001",
            "event": {
                "type": "message",
                "channel_type": "im",
                "channel": "D1",
                "user": "U1",
                "text": "Shipped the API",
                "ts": "1705327200.000100",
            },
        }).encode()

        response = await client.post(
            "/slack/events", content=body,
            headers=_signed_headers(settings.slack_signing_secret, body),
        )

        assert response.status_code == 200
        async with session_factory() as session:
            row = await session.scalar(select(Submission))
        assert row.content == "Shipped the API"
        assert row.date == date(2024, 1, 15)
        assert sink.sent[0].channel == "D1"

    @pytest.mark.parametrize("extra", [
        {"bot_id": "B1"},
        {"subtype": "message_changed"},
        {"channel_type": "channel"},
    ])
    async def test_ignored_messages(self, client, settings, session_factory, team, sink, extra):
        event = {"type": "message", "channel_type": "im", "user": "U1", "text": "hi", **extra}
        body = json.dumps({"type": "event_callback", "team_id": "T001", "event": event}).encode()

        response = await client.post(
            "/slack/events", content=body,
            headers=_signed_headers(settings.slack_signing_secret, body),
        )

        assert response.status_code == 200
        async with session_factory() as session:
            assert await session.scalar(select(Submission)) is None
        assert sink.sent == []

    async def test_app_mention(self, client, settings, team, sink):
        body = json.dumps({
            "type": "event_callback",
            "team_id": "T001",
            "event": {"type": "app_mention", "user": "U1", "channel": "C9", "text": "<@UBOT> help"},
        }).encode()

        await client.post(
            "/slack/events", content=body,
            headers=_signed_headers(settings.slack_signing_secret, body),
        )

        assert sink.sent[0].channel == "C9"
        assert "Channel Commands" in sink.sent[0].text

    async def test_app_uninstalled(self, client, settings, session_factory, team):
        body = json.dumps({
            "type": "event_callback",
            "team_id": "T001",
            "event": {"type": "app_uninstalled"},
        }).encode()

        response = await client.post(
            "/slack/events", content=body,
            headers=_signed_headers(settings.slack_signing_secret, body),
        )

        assert response.status_code == 200
        async with session_factory() as session:
            assert await session.scalar(select(Team)) is None


class TestSlackOAuth:
    """GET /slack/install and /slack/oauth/callback"""

    async def test_install_redirects_to_slack(self, client):
        response = await client.get("/slack/install")

        assert response.status_code == 302
        location = urlparse(response.headers["location"])
        params = parse_qs(location.query)
        assert location.netloc == "slack.com"
        assert params["client_id"] == ["client-id"]
        assert "im:history" in params["scope"][0]

    async def test_callback_installs_team(self, client, settings, session_factory):
        def slack(request: httpx.Request) -> httpx.Response:
            assert request.url.path.endswith("/oauth.v2.access")
            return httpx.Response(200, json={
                "ok": True,
                "access_token": "xoxb-new",
                "bot_user_id": "UBOT",
                "team": {"id": "T777", "name": "Umbrella"},
                "authed_user": {"id": "U1"},
            })

        app.state.http_client = httpx.AsyncClient(transport=httpx.MockTransport(slack))
        try:
            response = await client.get(
                "/slack/oauth/callback",
                params={"code": "c0de", "state": make_oauth_state(settings.slack_client_secret)},
            )
        finally:
            await app.state.http_client.aclose()
            del app.state.http_client

        assert response.status_code == 200
        assert response.json()["team_id"] == "T777"
        async with session_factory() as session:
            team = await session.scalar(select(Team).where(Team.slack_team_id == "T777"))
        assert team.bot_token == "xoxb-new"
        assert team.installed_by == "U1"

    async def test_callback_rejects_bad_state(self, client):
        app.state.http_client = httpx.AsyncClient()
        try:
            response = await client.get(
                "/slack/oauth/callback", params={"code": "c0de", "state": "forged"}
            )
        finally:
            await app.state.http_client.aclose()
            del app.state.http_client

        assert response.status_code == 400


class TestReminderCheck:
    """POST /api/reminders/check"""

    async def test_tick(self, client, session_factory, team, sink):
        sink.roster = ["U1"]

        response = await client.post("/api/reminders/check", json={"hour": 19, "minute": 0})

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["tick"] == "19:00"
        assert response.json()["reminded"] == 1

    async def test_team_failure_is_500_with_body(self, client, team, sink):
        sink.roster_fails = True

        response = await client.post("/api/reminders/check", json={"hour": 19, "minute": 0})

        assert response.status_code == 500
        assert response.json()["status"] == "error"
        assert len(response.json()["errors"]) == 1

    async def test_defaults_to_now(self, client):
        response = await client.post("/api/reminders/check")
        assert response.status_code == 200

    async def test_out_of_range(self, client):
        response = await client.post("/api/reminders/check", json={"hour": 24, "minute": 0})
        assert response.status_code == 422

    async def test_cron_secret(self, client, settings):
        settings.cron_secret = "s3cret"

        denied = await client.post("/api/reminders/check", json={"hour": 3, "minute": 0})
        allowed = await client.post(
            "/api/reminders/check",
            json={"hour": 3, "minute": 0},
            headers={"X-Cron-Secret": "s3cret"},
        )

        assert denied.status_code == 401
        assert allowed.status_code == 200

    async def test_wrong_cron_secret(self, client, settings):
        settings.cron_secret = "s3cret"

        response = await client.post(
            "/api/reminders/check",
            json={"hour": 3, "minute": 0},
            headers={"X-Cron-Secret": "s3cret-but-not-quite"},
        )

        assert response.status_code == 401

    @pytest.mark.parametrize("environment", ["staging", "production"])
    async def test_missing_cron_secret_refused_outside_development(
        self, client, settings, team, environment
    ):
        settings.environment = environment
        settings.cron_secret = None

        tick = await client.post("/api/reminders/check", json={"hour": 3, "minute": 0})
        config = await client.get("/api/teams/T001/config")

        assert tick.status_code == 503
        assert config.status_code == 503

    async def test_missing_cron_secret_allowed_in_development(self, client, settings):
        settings.cron_secret = None

        response = await client.post("/api/reminders/check", json={"hour": 3, "minute": 0})

        assert response.status_code == 200


class TestTeamRoutes:
    """/api/teams/{slack_team_id}/..."""

    async def test_get_config(self, client, team):
        response = await client.get("/api/teams/T001/config")

        assert response.status_code == 200
        assert response.json()["standup_channel_id"] == "C_STANDUP"
        assert response.json()["reminder_time"] == "19:00:00"
        assert response.json()["is_configured"] is True

    async def test_update_config(self, client, team):
        response = await client.put(
            "/api/teams/T001/config",
            json={"deadline_time": "17:30", "timezone": "Europe/Berlin"},
        )

        assert response.status_code == 200
        assert response.json()["deadline_time"] == "17:30:00"
        assert response.json()["timezone"] == "Europe/Berlin"
        assert response.json()["reminder_time"] == "19:00:00"

    @pytest.mark.parametrize("payload", [
        {"timezone": "Nowhere/Special"},
        {"reminder_time": "25:00"},
    ])
    async def test_invalid_config(self, client, team, payload):
        response = await client.put("/api/teams/T001/config", json=payload)
        assert response.status_code == 422

    async def test_unknown_team(self, client):
        response = await client.get("/api/teams/T404/config")
        assert response.status_code == 404

    async def test_status(self, client, session_factory, team, sink):
        sink.roster = ["U1", "U2"]
        async with session_factory() as session:
            session.add(Submission(
                team_id=team.id, slack_user_id="U1", user_name="Alice",
                content="x", date=date(2024, 1, 15), is_late=True,
            ))
            await session.commit()

        response = await client.get("/api/teams/T001/status", params={"date": "2024-01-15"})

        assert response.status_code == 200
        data = response.json()
        assert data["submitted_users"] == ["U1"]
        assert data["late_users"] == ["U1"]
        assert data["missing_users"] == ["U2"]
        assert data["display_names"] == {"U1": "Alice"}
        assert data["roster_available"] is True
