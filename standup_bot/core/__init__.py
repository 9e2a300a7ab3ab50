"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    build_engine,
    build_session_factory,
    close_db,
    engine,
    get_session,
    get_session_context,
    init_db,
)
from .security import (
    CredentialError,
    decrypt_token,
    encrypt_token,
    make_oauth_state,
    verify_oauth_state,
    verify_slack_signature,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "build_engine",
    "build_session_factory",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Security
    "CredentialError",
    "encrypt_token",
    "decrypt_token",
    "verify_slack_signature",
    "make_oauth_state",
    "verify_oauth_state",
]
