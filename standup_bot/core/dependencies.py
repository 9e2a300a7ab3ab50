"""FastAPI dependencies for sessions, settings and outbound messaging."""

import hmac
import logging
from typing import Annotated

import httpx
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..services.events import SinkFactory, StandupEventHandler
from ..services.notification_sink import SlackSinkFactory
from .config import Settings, get_settings
from .database import async_session_factory, get_session
from .security import verify_slack_signature

logger = logging.getLogger(__name__)


SessionDep = Annotated[AsyncSession, Depends(get_session)]
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Factory for jobs that open one session per team."""
    return async_session_factory


SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound client created in the app lifespan."""
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Outbound HTTP client is not ready",
        )
    return client


def get_sink_factory(
    settings: SettingsDep,
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> SinkFactory:
    return SlackSinkFactory(settings, http_client)


SinkFactoryDep = Annotated[SinkFactory, Depends(get_sink_factory)]


def get_event_handler(
    session: SessionDep,
    sink_factory: SinkFactoryDep,
    settings: SettingsDep,
) -> StandupEventHandler:
    return StandupEventHandler(session, sink_factory, settings)


EventHandlerDep = Annotated[StandupEventHandler, Depends(get_event_handler)]


async def require_slack_signature(
    request: Request,
    settings: SettingsDep,
    x_slack_signature: Annotated[str | None, Header()] = None,
    x_slack_request_timestamp: Annotated[str | None, Header()] = None,
) -> bytes:
    """
    Verify the Slack signature and return the raw body.

    Verification is skipped only in development with no signing secret.
    """
    body = await request.body()

    if settings.environment != "development" or settings.slack_signing_secret:
        if not x_slack_signature or not x_slack_request_timestamp:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing Slack signature headers"
            )

        if not verify_slack_signature(
            settings.slack_signing_secret, body, x_slack_request_timestamp, x_slack_signature
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid Slack signature"
            )

    return body


SlackBodyDep = Annotated[bytes, Depends(require_slack_signature)]


def require_cron_secret(
    settings: SettingsDep,
    x_cron_secret: Annotated[str | None, Header()] = None,
) -> None:
    """
    Guard the tick and team routes with the shared CRON_SECRET.

    Only development may run without a secret configured; elsewhere the
    routes are refused until one is set.
    """
    if not settings.cron_secret:
        if settings.environment == "development":
            return
        logger.error("CRON_SECRET is not set; refusing cron-guarded request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret is not configured",
        )

    if not x_cron_secret or not hmac.compare_digest(
        x_cron_secret.encode(), settings.cron_secret.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )
