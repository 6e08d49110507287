"""
auth/tokens.py -- Access/refresh JWTs, session-version checks, and reset tokens.

Security design decisions:
  JWT: python-jose with HS256. Two token kinds:
       - access:  {sub, account_id, type="access", exp}, short-lived, signed
                  with SECRET_KEY. Authorizes ordinary requests.
       - refresh: {sub, account_id, version, type="refresh", exp}, long-lived,
                  signed with REFRESH_SECRET_KEY. Only exchanged for a new
                  access token.
       The type claim plus the separate keys mean neither kind is accepted
       where the other is expected.

  Session version: the refresh token embeds the account's jwt_version at
       issue time. refresh_access_token() rejects it once the stored version
       has moved on (sign-out, password reset). The refresh token itself is
       not rotated.

  Reset tokens: secrets.token_hex(20) -- 160 bits, 40 hex chars.

  Verification raises InvalidToken on any failure; the API exception handler
  turns that into a 401 envelope.

Layer rule: no imports from api/, forum/, or mailer/. Import from core/ is
allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.errors import InvalidToken
from core.config import get_settings

if TYPE_CHECKING:
    from auth.store import AccountStore

logger = logging.getLogger("gameportal.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_ACCESS = "access"
_REFRESH = "refresh"


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


def _expiry(seconds: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def create_access_token(account_id: int, expire_seconds: int = 0) -> str:
    """Encode a signed, short-lived access token for the account.

    expire_seconds overrides Settings.access_token_expire_seconds when non-zero.
    A negative value issues an already-expired token (useful in tests).
    """
    duration = expire_seconds if expire_seconds != 0 else _settings.access_token_expire_seconds
    payload = {
        "sub": str(account_id),
        "account_id": account_id,
        "type": _ACCESS,
        "exp": _expiry(duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def create_refresh_token(account_id: int, session_version: int, expire_seconds: int = 0) -> str:
    """Encode a refresh token stamped with the account's current session version."""
    duration = expire_seconds if expire_seconds != 0 else _settings.refresh_token_expire_seconds
    payload = {
        "sub": str(account_id),
        "account_id": account_id,
        "version": session_version,
        "type": _REFRESH,
        "exp": _expiry(duration),
    }
    return jwt.encode(payload, _settings.refresh_secret_key, algorithm=_ALGORITHM)


# ---------------------------------------------------------------------------
# Verify
# ---------------------------------------------------------------------------


def _decode(token: str, key: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise InvalidToken() from exc
    if payload.get("type") != expected_type or not isinstance(payload.get("account_id"), int):
        raise InvalidToken()
    return payload


def verify_access_token(token: str) -> dict:
    """Return {"account_id": int} for a valid access token, else raise InvalidToken."""
    payload = _decode(token, _settings.secret_key, _ACCESS)
    return {"account_id": payload["account_id"]}


def verify_refresh_token(token: str) -> dict:
    """Return {"account_id": int, "version": int} for a valid refresh token.

    Only checks signature, expiry, and shape. Whether the version is still
    current is refresh_access_token()'s job because it needs the store.
    """
    payload = _decode(token, _settings.refresh_secret_key, _REFRESH)
    if not isinstance(payload.get("version"), int):
        raise InvalidToken()
    return {"account_id": payload["account_id"], "version": payload["version"]}


def refresh_access_token(store: AccountStore, token: str) -> str:
    """Exchange a refresh token for a fresh access token.

    Raises InvalidToken if the token does not verify, the account no longer
    exists, or the token's session version differs from the stored one.
    """
    claims = verify_refresh_token(token)
    account = store.get_by_id(claims["account_id"])
    if account is None:
        raise InvalidToken()
    if claims["version"] != account.jwt_version:
        logger.info(
            "Rejected stale refresh token account_id=%d token_version=%d current=%d",
            account.id,
            claims["version"],
            account.jwt_version,
        )
        raise InvalidToken()
    return create_access_token(account.id)


# ---------------------------------------------------------------------------
# Header parsing and reset tokens
# ---------------------------------------------------------------------------


def token_from_header(value: str | None) -> str | None:
    """Extract a token from an Authorization header value.

    Accepts "Bearer <token>" and a bare token. Returns None when empty.
    """
    if not value:
        return None
    scheme, _, rest = value.strip().partition(" ")
    if rest and scheme.lower() == "bearer":
        return rest.strip() or None
    return value.strip() or None


def generate_reset_token() -> str:
    """Return a random 40-char hex password reset token."""
    return secrets.token_hex(20)
