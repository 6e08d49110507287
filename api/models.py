"""
API request and response models for the portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
forum/models.py, which own the internal domain representation. Route handlers
map between the two.

Every response body is an Envelope: {ok, data, message, meta}. Errors use the
same shape with ok=false and the machine-readable code in meta.code.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Account
from forum.models import Post

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class Envelope(BaseModel):
    """Top-level response body for every endpoint."""

    ok: bool = True
    data: Any = None
    message: Optional[str] = None
    meta: Optional[dict[str, Any]] = None


def error_envelope(code: str, message: str, detail: Optional[str] = None) -> dict:
    """Build the JSON body for an error response."""
    meta: dict[str, Any] = {"code": code}
    if detail is not None:
        meta["detail"] = detail
    return Envelope(ok=False, message=message, meta=meta).model_dump()


# ---------------------------------------------------------------------------
# Account -- requests
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /account/sign-up."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=32)
    password: str = Field(min_length=1, max_length=72)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)


class SignInRequest(BaseModel):
    """Request body for POST /account/sign-in."""

    name: str = Field(min_length=1, max_length=32)
    password: str = Field(min_length=1, max_length=255)


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /account/reset."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    token: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=72)


class ProfileInfoUpdate(BaseModel):
    """Request body for PUT /account/profile_info.

    Lists exactly the fields an account may edit. Unknown keys are rejected
    with 422 instead of being silently dropped.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    rlname: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)


class ProfileNameRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    profile_name: str = Field(alias="profileName", min_length=1, max_length=32)


# ---------------------------------------------------------------------------
# Account -- responses
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public view of an account. Never includes the password hash or reset token."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    profile_name: Optional[str]
    rlname: Optional[str]
    location: Optional[str]
    avatar: str
    created_at: Optional[str]

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            email=account.email,
            profile_name=account.profile_name,
            rlname=account.rlname,
            location=account.location,
            avatar=account.avatar,
            created_at=account.created_at,
        )


# ---------------------------------------------------------------------------
# Forum
# ---------------------------------------------------------------------------


class PostCreate(BaseModel):
    """Request body for POST /news/create. The author comes from the access token."""

    model_config = ConfigDict(str_strip_whitespace=True)

    post_topic: str = Field(min_length=1, max_length=255)
    post_text: str = Field(min_length=1, max_length=20000)
    author_guid: Optional[int] = None


class PostResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    author_aid: int
    author_guid: Optional[int]
    post_topic: str
    post_text: str
    likes_count: int
    created_at: Optional[str]

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            id=post.id,
            author_aid=post.author_aid,
            author_guid=post.author_guid,
            post_topic=post.post_topic,
            post_text=post.post_text,
            likes_count=post.likes_count,
            created_at=post.created_at,
        )


class LikeRow(BaseModel):
    """One row of GET /news/getLikes."""

    model_config = ConfigDict(frozen=True)

    id: int
    likes_count: int
    author_aid: int


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
