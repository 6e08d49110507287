"""
api/routes/account.py -- Account, session, and profile REST endpoints.

Routes:
  POST   /account/sign-up        -- register; returns account + token pair
  POST   /account/sign-in        -- password login; returns account + token pair
  POST   /account/sign-out       -- bump session version (requires auth)
  POST   /account/refresh        -- refresh token -> new access token
  POST   /account/forgot         -- store reset token, mail it (background)
  POST   /account/reset          -- redeem reset token, set new password
  PUT    /account/profile_info   -- update real name / location (requires auth)
  POST   /account/profile_name   -- claim a unique profile name (requires auth)
  POST   /account/avatar         -- upload avatar image (requires auth)
  GET    /account/avatar         -- avatar URL, or the account if none (requires auth)
  DELETE /account/avatar         -- remove avatar (requires auth)

Security:
  Sign-in, sign-up, forgot, and reset are rate-limited per client address.
  Token-bearing responses carry Cache-Control: no-store.
  Sign-out and password reset increment jwt_version, so every refresh token
  issued before them stops working.
  Domain failures are raised as auth.errors exceptions and rendered by the
  handler in api/main.py.
"""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, UploadFile

from api.limiter import limiter
from api.models import (
    AccountResponse,
    Envelope,
    ForgotPasswordRequest,
    ProfileInfoUpdate,
    ProfileNameRequest,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
)
from auth.avatars import AvatarStorage
from auth.dependencies import get_current_account
from auth.errors import EmailNotFound, InvalidCredentials, InvalidToken, NotFound
from auth.models import Account, ProfileUpdate
from auth.passwords import hash_password
from auth.store import AccountStore
from auth.tokens import (
    create_access_token,
    create_refresh_token,
    generate_reset_token,
    refresh_access_token,
    token_from_header,
)
from core.config import get_settings

logger = logging.getLogger("gameportal.api")

_settings = get_settings()

# Auth policy:
# - sign-up, sign-in, forgot, reset:  public, rate-limited
# - refresh:                           public, but needs a refresh token
# - everything else:                   requires an access token (get_current_account)
router = APIRouter()


def _token_meta(account: Account) -> dict:
    return {
        "token": create_access_token(account.id),
        "refreshToken": create_refresh_token(account.id, account.jwt_version),
    }


def _account_data(account: Account) -> dict:
    return AccountResponse.from_account(account).model_dump()


# ---------------------------------------------------------------------------
# Registration and sessions
# ---------------------------------------------------------------------------


@router.post("/sign-up", response_model=Envelope)
@limiter.limit(_settings.signup_rate_limit)
def sign_up(request: Request, response: Response, body: SignUpRequest) -> Envelope:
    """Create an account and sign it in.

    DuplicateName is checked before DuplicateEmail; either one means nothing
    was written.
    """
    store: AccountStore = request.app.state.account_store
    account = store.create(body.name, hash_password(body.password), body.email)
    logger.info("Account created id=%d name=%s", account.id, account.name)
    response.headers["Cache-Control"] = "no-store"
    return Envelope(data=_account_data(account), message="Account created.", meta=_token_meta(account))


@router.post("/sign-in", response_model=Envelope)
@limiter.limit(_settings.signin_rate_limit)
def sign_in(request: Request, response: Response, body: SignInRequest) -> Envelope:
    """Authenticate with name and password and issue an access/refresh pair.

    Wrong name and wrong password produce the same error so the response does
    not reveal which names exist.
    """
    store: AccountStore = request.app.state.account_store
    account = store.find_by_credentials(body.name, body.password)
    if account is None:
        logger.warning("Failed sign-in for name=%s", body.name)
        raise InvalidCredentials()
    response.headers["Cache-Control"] = "no-store"
    return Envelope(data=_account_data(account), message="Signed in.", meta=_token_meta(account))


@router.post("/sign-out", response_model=Envelope)
def sign_out(request: Request, account: Account = Depends(get_current_account)) -> Envelope:
    """Invalidate every refresh token of the account.

    Access tokens already issued stay valid until they expire; they are
    short-lived by design of the token pair.
    """
    store: AccountStore = request.app.state.account_store
    version = store.bump_session_version(account.id)
    logger.info("Signed out account_id=%d (jwt_version=%d)", account.id, version)
    return Envelope(message="Signed out.")


@router.post("/refresh", response_model=Envelope)
def refresh(request: Request, response: Response) -> Envelope:
    """Exchange the refresh token in the Authorization header for a new access token."""
    token = token_from_header(request.headers.get("Authorization"))
    if token is None:
        raise InvalidToken()
    store: AccountStore = request.app.state.account_store
    response.headers["Cache-Control"] = "no-store"
    return Envelope(meta={"token": refresh_access_token(store, token)})


# ---------------------------------------------------------------------------
# Password recovery
# ---------------------------------------------------------------------------


@router.post("/forgot", response_model=Envelope)
@limiter.limit(_settings.forgot_rate_limit)
def forgot_password(request: Request, body: ForgotPasswordRequest, background_tasks: BackgroundTasks) -> Envelope:
    """Store a fresh reset token for the account and mail it.

    The mail goes out as a background task after the response is sent. A
    delivery failure is logged by Mailer.send_safely and never changes the
    response; the user can simply ask again.
    """
    store: AccountStore = request.app.state.account_store
    account = store.get_by_email(body.email)
    if account is None:
        raise EmailNotFound()

    token = generate_reset_token()
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=_settings.password_reset_expire_seconds)
    store.set_reset_token(account.id, token, expires_at)
    logger.info("Password reset token issued for account_id=%d", account.id)

    background_tasks.add_task(
        request.app.state.mailer.send_safely,
        account.email,
        "Reset your password",
        "forgot_password.txt",
        {"name": account.name, "token": token, "expires_at": expires_at.strftime("%Y-%m-%d %H:%M")},
    )
    return Envelope(data=account.email, message="Password reset instructions sent.")


@router.post("/reset", response_model=Envelope)
@limiter.limit(_settings.reset_rate_limit)
def reset_password(request: Request, body: ResetPasswordRequest) -> Envelope:
    """Set a new password using a reset token.

    Order of checks: unknown email (400), token mismatch (401), expired token
    (400). Success clears the token and signs the account out everywhere.
    """
    store: AccountStore = request.app.state.account_store
    account = store.get_by_email(body.email)
    if account is None:
        raise EmailNotFound()
    account = store.consume_reset_token(account.id, body.token, hash_password(body.password))
    logger.info("Password reset completed for account_id=%d", account.id)
    return Envelope(data=_account_data(account), message="Password changed.")


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.put("/profile_info", response_model=Envelope)
def update_profile_info(
    request: Request,
    body: ProfileInfoUpdate,
    account: Account = Depends(get_current_account),
) -> Envelope:
    """Update real name and/or location. Empty values leave a field unchanged."""
    store: AccountStore = request.app.state.account_store
    updated = store.update_profile_fields(account.id, ProfileUpdate(rlname=body.rlname, location=body.location))
    return Envelope(data=_account_data(updated), message="Profile updated.")


@router.post("/profile_name", response_model=Envelope)
def set_profile_name(
    request: Request,
    body: ProfileNameRequest,
    account: Account = Depends(get_current_account),
) -> Envelope:
    store: AccountStore = request.app.state.account_store
    updated = store.set_profile_name(account.id, body.profile_name)
    return Envelope(data=updated.profile_name, message="Profile name saved.")


# ---------------------------------------------------------------------------
# Avatar
# ---------------------------------------------------------------------------


@router.post("/avatar", response_model=Envelope)
async def upload_avatar(
    request: Request,
    avatar: UploadFile,
    account: Account = Depends(get_current_account),
) -> Envelope:
    """Store an uploaded image as the account's avatar, replacing any previous one."""
    storage: AvatarStorage = request.app.state.avatars
    if not (avatar.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_file", "message": "Avatar must be an image."},
        )
    # Size guard -- read up to the limit + 1 byte; reject if over
    raw = await avatar.read(storage.max_bytes + 1)
    if len(raw) > storage.max_bytes:
        raise HTTPException(
            status_code=413,
            detail={"code": "file_too_large", "message": f"Avatar must be {storage.max_bytes} bytes or smaller."},
        )
    if not raw:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_file", "message": "Avatar file is empty."},
        )

    store: AccountStore = request.app.state.account_store
    previous = account.avatar
    path = storage.save(avatar.filename, raw)
    updated = store.set_avatar_path(account.id, path)
    if previous:
        storage.delete(previous)
    logger.info("Avatar updated for account_id=%d path=%s", account.id, path)
    return Envelope(data=_account_data(updated), message="Avatar saved.")


@router.get("/avatar", response_model=Envelope)
def get_avatar(account: Account = Depends(get_current_account)) -> Envelope:
    """Return the public avatar URL, or the account itself when no avatar is set."""
    if account.avatar:
        return Envelope(data=f"{_settings.public_base_url.rstrip('/')}/{account.avatar}")
    return Envelope(data=_account_data(account))


@router.delete("/avatar", response_model=Envelope)
def delete_avatar(request: Request, account: Account = Depends(get_current_account)) -> Envelope:
    if not account.avatar:
        raise NotFound("No avatar has been set.", status_code=400)
    store: AccountStore = request.app.state.account_store
    storage: AvatarStorage = request.app.state.avatars
    updated = store.set_avatar_path(account.id, "")
    storage.delete(account.avatar)
    return Envelope(data=_account_data(updated), message="Avatar deleted.")
