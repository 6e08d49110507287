"""Unit tests for auth/tokens.py -- JWT issue/verify and session-version refresh.

Covers:
- access and refresh tokens verify only as their own kind
- expired, forged, and malformed tokens raise InvalidToken
- refresh_access_token() honours the stored session version
- Authorization header parsing and reset token generation
"""

import time

import pytest
from jose import jwt

from auth.errors import InvalidToken
from auth.passwords import hash_password
from auth.tokens import (
    create_access_token,
    create_refresh_token,
    generate_reset_token,
    refresh_access_token,
    token_from_header,
    verify_access_token,
    verify_refresh_token,
)
from core.config import get_settings


class TestVerify:
    def test_access_token_yields_account_id(self):
        assert verify_access_token(create_access_token(7)) == {"account_id": 7}

    def test_refresh_token_yields_account_id_and_version(self):
        assert verify_refresh_token(create_refresh_token(7, 3)) == {"account_id": 7, "version": 3}

    def test_refresh_token_is_not_an_access_token(self):
        with pytest.raises(InvalidToken):
            verify_access_token(create_refresh_token(7, 0))

    def test_access_token_is_not_a_refresh_token(self):
        with pytest.raises(InvalidToken):
            verify_refresh_token(create_access_token(7))

    def test_expired_access_token_is_rejected(self):
        with pytest.raises(InvalidToken):
            verify_access_token(create_access_token(7, expire_seconds=-10))

    def test_expired_refresh_token_is_rejected(self):
        with pytest.raises(InvalidToken):
            verify_refresh_token(create_refresh_token(7, 0, expire_seconds=-10))

    def test_token_signed_with_another_key_is_rejected(self):
        forged = jwt.encode({"sub": "7", "account_id": 7, "type": "access"}, "x" * 32, algorithm="HS256")
        with pytest.raises(InvalidToken):
            verify_access_token(forged)

    def test_garbage_is_rejected(self):
        with pytest.raises(InvalidToken):
            verify_access_token("not-a-token")

    def test_expire_seconds_overrides_default_lifetime(self):
        now = time.time()
        short = jwt.get_unverified_claims(create_access_token(7, expire_seconds=60))
        default = jwt.get_unverified_claims(create_access_token(7))
        assert now + 50 <= short["exp"] <= now + 70
        assert default["exp"] >= now + get_settings().access_token_expire_seconds - 10


class TestRefreshAccessToken:
    def test_current_version_issues_new_access_token(self, account_store):
        account = account_store.create("knight", hash_password("s3cret"), "knight@example.com")
        token = refresh_access_token(account_store, create_refresh_token(account.id, account.jwt_version))
        assert verify_access_token(token) == {"account_id": account.id}

    def test_stale_version_is_rejected(self, account_store):
        account = account_store.create("knight", hash_password("s3cret"), "knight@example.com")
        refresh = create_refresh_token(account.id, account.jwt_version)
        account_store.bump_session_version(account.id)
        with pytest.raises(InvalidToken):
            refresh_access_token(account_store, refresh)

    def test_token_minted_for_new_version_is_accepted(self, account_store):
        account = account_store.create("knight", hash_password("s3cret"), "knight@example.com")
        version = account_store.bump_session_version(account.id)
        token = refresh_access_token(account_store, create_refresh_token(account.id, version))
        assert verify_access_token(token)["account_id"] == account.id

    def test_missing_account_is_rejected(self, account_store):
        with pytest.raises(InvalidToken):
            refresh_access_token(account_store, create_refresh_token(999, 0))


class TestHelpers:
    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc.def.ghi", "abc.def.ghi"),
            ("abc.def.ghi", "abc.def.ghi"),
            ("", None),
            (None, None),
        ],
    )
    def test_token_from_header(self, header, expected):
        assert token_from_header(header) == expected

    def test_reset_tokens_are_random_40_char_hex(self):
        first, second = generate_reset_token(), generate_reset_token()
        assert len(first) == 40
        int(first, 16)
        assert first != second
