"""Request signing and credential encryption helpers."""

import hashlib
import hmac
import logging
import time

from cryptography.fernet import Fernet, InvalidToken

from .config import Settings

logger = logging.getLogger(__name__)

# Slack rejects requests older than five minutes
SIGNATURE_MAX_AGE_SECONDS = 60 * 5


class CredentialError(Exception):
    """A stored credential could not be encrypted or decrypted."""
    pass


def verify_slack_signature(
    signing_secret: str | None,
    body: bytes,
    timestamp: str,
    signature: str,
    now: float | None = None,
) -> bool:
    """
    Verify Slack request signature using HMAC-SHA256.

    See: https://api.slack.com/authentication/verifying-requests-from-slack
    """
    if not signing_secret:
        logger.warning("Slack signing secret not configured")
        return False

    try:
        request_timestamp = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - request_timestamp) > SIGNATURE_MAX_AGE_SECONDS:
        logger.warning("Slack request timestamp too old")
        return False

    sig_basestring = f"v0:{timestamp}:{body.decode()}"
    expected_sig = "v0=" + hmac.new(
        signing_secret.encode(),
        sig_basestring.encode(),
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(expected_sig, signature)


def encrypt_token(token: str, settings: Settings) -> str:
    """Encrypt a bot token for storage."""
    if not settings.encryption_enabled:
        logger.warning("Encryption not configured - storing token in plaintext")
        return token

    try:
        f = Fernet(settings.encryption_key.encode())
        return f.encrypt(token.encode()).decode()
    except ValueError as e:
        logger.error(f"Failed to encrypt token: {e}")
        raise CredentialError("Failed to securely store credentials") from e


def decrypt_token(encrypted: str, settings: Settings) -> str:
    """Decrypt a stored bot token."""
    if not settings.encryption_enabled:
        return encrypted

    try:
        f = Fernet(settings.encryption_key.encode())
        return f.decrypt(encrypted.encode()).decode()
    except (InvalidToken, ValueError) as e:
        logger.error(f"Failed to decrypt token: {e}")
        raise CredentialError("Failed to retrieve credentials") from e


# OAuth state is valid for ten minutes
OAUTH_STATE_MAX_AGE_SECONDS = 60 * 10


def _state_digest(secret: str, issued_at: str) -> str:
    return hmac.new(secret.encode(), f"oauth:{issued_at}".encode(), hashlib.sha256).hexdigest()


def make_oauth_state(secret: str, now: float | None = None) -> str:
    """Signed, timestamped state for the install redirect."""
    issued_at = str(int(time.time() if now is None else now))
    return f"{issued_at}.{_state_digest(secret, issued_at)}"


def verify_oauth_state(secret: str | None, state: str | None, now: float | None = None) -> bool:
    if not secret or not state or "." not in state:
        return False

    issued_at, digest = state.split(".", 1)
    try:
        issued = int(issued_at)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if current - issued > OAUTH_STATE_MAX_AGE_SECONDS or issued > current + 60:
        return False

    return hmac.compare_digest(_state_digest(secret, issued_at), digest)
