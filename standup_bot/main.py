"""SUPS Stand-up Bot: Main FastAPI Application.

Collects daily stand-ups over Slack DMs, reminds people who have not
submitted, and posts a threaded summary to the team channel at the
deadline.
"""

import logging
import traceback
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .api import api_router
from .core import close_db, get_settings, init_db
from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    # Skip init_db in production (tables are managed by migrations)
    if settings.environment != "production":
        await init_db()

    app.state.http_client = httpx.AsyncClient(timeout=settings.slack_timeout_seconds)
    yield
    # Shutdown
    await app.state.http_client.aclose()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## SUPS Stand-up Bot

    Asynchronous daily stand-ups for Slack workspaces.

    - **Submissions**: members DM the bot; every message is kept and merged per day.
    - **Reminders**: members who have not submitted get a DM at the reminder time.
    - **Summaries**: at the deadline the bot posts one thread per day to the stand-up channel.

    `POST /api/reminders/check` is driven by an external once-a-minute cron.
    """,
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    error_detail = str(exc)
    # In development/debug mode, include full traceback
    if settings.debug or settings.environment != "production":
        error_detail = f"{str(exc)}\n{traceback.format_exc()}"

    logger.error(f"Unhandled exception on {request.url.path}: {error_detail}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=f"An unexpected error occurred: {str(exc)[:200]}",
            details=[],
        ).model_dump(),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": settings.app_version}


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "standup_bot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
