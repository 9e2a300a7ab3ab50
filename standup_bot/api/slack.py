"""Slack Router: Events API and OAuth installation.

Every request to /slack/events is signature-checked before it is parsed.
Slack expects a fast 200; handler results are not part of the response.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Annotated, Any
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from ..core.dependencies import (
    EventHandlerDep,
    SettingsDep,
    SlackBodyDep,
    get_http_client,
)
from ..core.security import make_oauth_state, verify_oauth_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])

BOT_SCOPES = [
    "app_mentions:read",    # Channel mentions
    "channels:read",        # Stand-up channel roster
    "chat:write",           # Summaries, replies and reminders
    "im:history",           # Submissions arrive as DMs
    "im:read",
    "im:write",
    "users:read",           # Display names
]


# =============================================================================
# SCHEMAS
# =============================================================================


class InstallationResponse(BaseModel):
    """Result of a completed OAuth installation."""
    ok: bool
    team_id: str
    team_name: str | None
    message: str


# =============================================================================
# EVENTS
# =============================================================================


def _parse_ts(ts: str | None) -> datetime | None:
    if not ts:
        return None
    try:
        return datetime.fromtimestamp(float(ts), tz=timezone.utc)
    except ValueError:
        return None


@router.post("/events")
async def handle_slack_events(
    body: SlackBodyDep,
    handler: EventHandlerDep,
    x_slack_retry_num: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """
    Slack Events API endpoint.

    Handles the url_verification handshake and dispatches DMs, mentions
    and uninstall events. Slack retries are acknowledged without being
    handled again so a slow first delivery cannot double-record.
    """
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge")}

    if payload.get("type") != "event_callback":
        return {"ok": True}

    if x_slack_retry_num:
        logger.info(f"Ignoring Slack retry #{x_slack_retry_num}")
        return {"ok": True}

    event = payload.get("event") or {}
    event_type = event.get("type")
    team_id = payload.get("team_id") or event.get("team")

    if event_type == "message":
        # Only human DMs; edits, joins and bot echoes carry a subtype or bot_id
        if event.get("channel_type") != "im" or event.get("bot_id") or event.get("subtype"):
            return {"ok": True}
        await handler.direct_message(
            team_id,
            event.get("user"),
            event.get("text"),
            channel_id=event.get("channel"),
            sent_at=_parse_ts(event.get("ts")),
        )

    elif event_type == "app_mention":
        await handler.mention(
            team_id,
            event.get("user"),
            event.get("channel"),
            event.get("text"),
        )

    elif event_type in ("app_uninstalled", "tokens_revoked"):
        logger.info(f"Received {event_type} event for: {team_id}")
        await handler.uninstalled(team_id)

    else:
        logger.debug(f"Unhandled Slack event type: {event_type}")

    return {"ok": True}


# =============================================================================
# OAUTH
# =============================================================================


@router.get("/install")
async def slack_install(settings: SettingsDep) -> RedirectResponse:
    """Redirect straight to Slack's authorization page."""
    if not settings.slack_enabled:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Slack integration is not configured on this server"
        )

    params = {
        "client_id": settings.slack_client_id,
        "scope": ",".join(BOT_SCOPES),
        "state": make_oauth_state(settings.slack_client_secret),
    }
    if settings.slack_redirect_uri:
        params["redirect_uri"] = settings.slack_redirect_uri

    return RedirectResponse(
        url=f"https://slack.com/oauth/v2/authorize?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/oauth/callback", response_model=InstallationResponse)
async def slack_oauth_callback(
    settings: SettingsDep,
    handler: EventHandlerDep,
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> InstallationResponse:
    """
    Handle Slack OAuth callback.

    Exchanges the authorization code for a bot token and records the
    installation. A reinstall refreshes the stored token.
    """
    if not settings.slack_enabled:
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Slack integration is not configured"
        )

    if error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Slack authorization was declined: {error}"
        )

    if not code or not verify_oauth_state(settings.slack_client_secret, state):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid OAuth callback parameters"
        )

    form = {
        "client_id": settings.slack_client_id,
        "client_secret": settings.slack_client_secret,
        "code": code,
    }
    if settings.slack_redirect_uri:
        form["redirect_uri"] = settings.slack_redirect_uri

    try:
        response = await http_client.post(
            f"{settings.slack_api_base_url.rstrip('/')}/oauth.v2.access",
            data=form,
        )
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Slack OAuth exchange failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Could not reach Slack to complete installation"
        )

    if not data.get("ok"):
        logger.error(f"Slack OAuth error: {data.get('error')}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Slack authorization failed: {data.get('error')}"
        )

    team_info = data.get("team") or {}
    team = await handler.installed(
        team_info.get("id"),
        team_info.get("name"),
        data.get("access_token"),
        installed_by=(data.get("authed_user") or {}).get("id"),
        bot_user_id=data.get("bot_user_id"),
    )
    if team is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Slack returned incomplete installation data"
        )

    return InstallationResponse(
        ok=True,
        team_id=team.slack_team_id,
        team_name=team.name,
        message="Stand-up bot installed. Mention it in your stand-up channel to get started.",
    )
