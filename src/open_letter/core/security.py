"""Token and session helpers shared by the API and the NationStates client."""
from __future__ import annotations

import hashlib
import hmac
import time
from urllib.parse import urlencode

from jose import JWTError, jwt

from open_letter.core.settings import settings

ADMIN_SESSION_SUBJECT = "admin"


class ConfigurationError(RuntimeError):
    """Raised when a required secret or setting is missing at first use."""


def _require_token_secret() -> str:
    secret = settings.ns_verify_token_secret
    if not secret:
        raise ConfigurationError("NS_VERIFY_TOKEN_SECRET is not set")
    return secret


def generate_verification_token(nation_name: str) -> str:
    """Return the site-specific token for a nation's verification checksum.

    The token is the hex HMAC-SHA-256 of the lower-cased nation name keyed by
    ``NS_VERIFY_TOKEN_SECRET``. The signing page and the backend both call this
    so the checksum the user copies is bound to this site.

    Raises:
        ConfigurationError: If the token secret is not configured.
    """
    secret = _require_token_secret()
    return hmac.new(
        secret.encode("utf-8"),
        nation_name.lower().encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def build_verification_url(nation_name: str) -> str:
    """Return the NationStates login-verification page URL for a nation."""
    token = generate_verification_token(nation_name)
    return f"{settings.ns_verify_login_url}?{urlencode({'token': token})}"


def verify_admin_password(password: str) -> bool:
    """Compare a submitted admin password against ``ADMIN_PASSWORD``.

    Raises:
        ConfigurationError: If no admin password is configured.
    """
    expected = settings.admin_password
    if not expected:
        raise ConfigurationError("ADMIN_PASSWORD is not set")
    return hmac.compare_digest(password.encode("utf-8"), expected.encode("utf-8"))


def create_admin_session_token(ttl_minutes: int | None = None) -> str:
    """Issue a signed, expiring admin session token."""
    now = int(time.time())
    minutes = settings.admin_session_ttl_minutes if ttl_minutes is None else ttl_minutes
    payload = {
        "sub": ADMIN_SESSION_SUBJECT,
        "iat": now,
        "exp": now + max(1, minutes) * 60,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def is_admin_session_valid(token: str | None) -> bool:
    """Return True if ``token`` is an unexpired admin session token."""
    if not token:
        return False
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return False
    return payload.get("sub") == ADMIN_SESSION_SUBJECT
