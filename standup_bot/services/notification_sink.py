"""
Notification Sink: the outbound chat-platform capability.

The posting and reminder flows only see ``NotificationSink``. Production
uses ``SlackNotificationSink`` (Slack Web API over httpx); tests pass an
in-memory fake.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..core.config import Settings
from ..core.security import decrypt_token
from ..models import Team
from .errors import NotificationError

logger = logging.getLogger(__name__)


# =============================================================================
# NOTIFICATION SINK (Abstract)
# =============================================================================


class NotificationSink(ABC):
    """Outbound messaging for one installed team."""

    @abstractmethod
    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: str | None = None,
    ) -> str:
        """
        Post ``text`` to a channel or user DM, optionally in a thread.

        Returns:
            The message timestamp, usable as a thread handle.
        """
        pass

    @abstractmethod
    async def list_members(self, channel: str) -> list[str]:
        """Human member ids of a channel."""
        pass

    async def get_user_name(self, user_id: str) -> str | None:
        """Display name for a user, if the platform can tell us."""
        return None


# =============================================================================
# SLACK WEB API
# =============================================================================


def is_human_member(user_id: str, bot_user_id: str | None = None) -> bool:
    """Slack user ids start with U (or W on Enterprise Grid); bots are excluded."""
    if bot_user_id and user_id == bot_user_id:
        return False
    return user_id.startswith(("U", "W")) and user_id != "USLACKBOT"


class SlackNotificationSink(NotificationSink):
    """NotificationSink backed by the Slack Web API."""

    def __init__(
        self,
        token: str,
        http_client: httpx.AsyncClient,
        base_url: str = "https://slack.com/api",
        bot_user_id: str | None = None,
    ):
        self._token = token
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._bot_user_id = bot_user_id

    async def _call(
        self,
        method: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}/{method}"
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            if json is not None:
                response = await self._http.post(url, headers=headers, json=json)
            else:
                response = await self._http.get(url, headers=headers, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise NotificationError(f"Slack {method} failed: {e}") from e

        if not data.get("ok"):
            raise NotificationError(f"Slack {method} error: {data.get('error')}")
        return data

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts

        data = await self._call("chat.postMessage", json=payload)
        return data.get("ts", "")

    async def list_members(self, channel: str) -> list[str]:
        members: list[str] = []
        cursor = None

        while True:
            params: dict[str, Any] = {"channel": channel, "limit": 200}
            if cursor:
                params["cursor"] = cursor

            data = await self._call("conversations.members", params=params)
            members.extend(
                m for m in data.get("members", [])
                if is_human_member(m, self._bot_user_id)
            )

            # Check for pagination
            cursor = data.get("response_metadata", {}).get("next_cursor")
            if not cursor:
                break

        return members

    async def get_user_name(self, user_id: str) -> str | None:
        try:
            data = await self._call("users.info", params={"user": user_id})
        except NotificationError as e:
            logger.warning(f"Could not look up user {user_id}: {e}")
            return None

        user = data.get("user", {})
        return user.get("real_name") or user.get("name")


class SlackSinkFactory:
    """Builds a SlackNotificationSink per team from its stored credential."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._http = http_client

    def __call__(self, team: Team) -> SlackNotificationSink:
        return SlackNotificationSink(
            token=decrypt_token(team.bot_token, self._settings),
            http_client=self._http,
            base_url=self._settings.slack_api_base_url,
            bot_user_id=team.bot_user_id,
        )
