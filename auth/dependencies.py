"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes send the access token in the Authorization header, either as
"Bearer <token>" or bare (the portal's web client has always sent it bare).

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises InvalidToken (401) otherwise.

Layer rule: no imports from forum/ or mailer/. auth/dependencies.py may
import from fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import InvalidToken
from auth.models import Account
from auth.tokens import token_from_header, verify_access_token


def try_get_current_account(request: Request) -> Account | None:
    """Authenticate the request via its access token; None on any failure."""
    token = token_from_header(request.headers.get("Authorization"))
    if token is None:
        return None
    try:
        claims = verify_access_token(token)
    except InvalidToken:
        return None
    return request.app.state.account_store.get_by_id(claims["account_id"])


def get_current_account(request: Request) -> Account:
    """Require a valid access token for an existing account.

    Use as a FastAPI dependency:
        @router.put("/account/profile_info")
        def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise InvalidToken()
    return account
