"""
auth/passwords.py -- Password hashing.

bcrypt is used directly (no passlib wrapper). Accounts imported from the
previous portal carry a single unsalted SHA-1 hex digest; those still verify
so existing players can sign in, and needs_rehash() tells the store to replace
them with bcrypt after the first successful check.

Layer rule: stdlib + bcrypt only.
"""

from __future__ import annotations

import hashlib
import hmac
import re

import bcrypt

_LEGACY_SHA1 = re.compile(r"^[0-9a-f]{40}$")
_BCRYPT_MAX_BYTES = 72


def _bcrypt_input(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes and recent releases reject longer
    input, so the encoded password is cut there explicitly.
    """
    return bcrypt.hashpw(_bcrypt_input(plain), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the stored hash."""
    if _LEGACY_SHA1.match(hashed):
        digest = hashlib.sha1(plain.encode("utf-8")).hexdigest()  # noqa: S324
        return hmac.compare_digest(digest, hashed)
    try:
        return bcrypt.checkpw(_bcrypt_input(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


def needs_rehash(hashed: str) -> bool:
    """True for hashes in the legacy unsalted SHA-1 format."""
    return bool(_LEGACY_SHA1.match(hashed))


# Timing equalization: verify against this when the account does not exist so
# response time does not reveal which names are registered.
DUMMY_HASH: str = hash_password("gameportal_timing_dummy")
