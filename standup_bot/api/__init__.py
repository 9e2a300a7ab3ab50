"""API routes for the stand-up bot."""

from fastapi import APIRouter

from .reminders import router as reminders_router
from .slack import router as slack_router
from .teams import router as teams_router

# Main API router
api_router = APIRouter()

# Slack-facing routes (events, OAuth)
api_router.include_router(slack_router)

# Operator routes, guarded by the cron secret
api_router.include_router(reminders_router)
api_router.include_router(teams_router)

__all__ = ["api_router"]
