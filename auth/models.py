"""
auth/models.py -- Domain dataclasses for account entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; api/models.py owns the HTTP shape.

Layer rule: no imports from api/, forum/, or mailer/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Account:
    """A registered portal account.

    password holds a bcrypt hash, or a 40-char SHA-1 hex digest for accounts
    created before the bcrypt migration (upgraded on next sign-in).

    avatar is a path relative to the site root ("uploads/<file>") or "" when
    no avatar is set.

    jwt_version is the session-version counter. A refresh token is only
    honoured while its embedded version equals this value; bumping it logs
    the account out everywhere.
    """

    name: str
    email: str
    password: str
    id: int | None = None
    profile_name: str | None = None
    rlname: str | None = None  # real-life name
    location: str | None = None
    avatar: str = ""
    password_reset_token: str | None = None
    password_reset_expires: str | None = None  # ISO 8601 UTC
    jwt_version: int = 0
    created_at: str | None = None


@dataclass
class ProfileUpdate:
    """The complete set of profile fields an account may edit directly.

    None (or empty) means "leave unchanged".
    """

    rlname: str | None = None
    location: str | None = None
