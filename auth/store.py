"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. Route and dependency code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Name, email, and profile name uniqueness is enforced by UNIQUE constraints.
  create() checks first so the common case gets a precise error, but two
  concurrent sign-ups can both pass the check; the loser then hits the
  constraint and the IntegrityError is mapped back to the matching error.

  Reset token consumption is a single conditional UPDATE keyed on the stored
  token, so a token can be redeemed at most once even under concurrency.

Schema migration notes:
  jwt_version INTEGER column: databases created before session versioning
  existed are upgraded in place on first startup (ALTER TABLE ADD COLUMN,
  default 0), so existing refresh tokens keep working until the first bump.

Layer rule: no imports from api/, forum/, or mailer/.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import asdict
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateEmail, DuplicateName, DuplicateProfileName, NotFound, TokenExpired, TokenMismatch
from auth.models import Account, ProfileUpdate
from auth.passwords import DUMMY_HASH, hash_password, needs_rehash, verify_password

logger = logging.getLogger("gameportal.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(32), nullable=False, unique=True),
    Column("password", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("profile_name", String(32), unique=True),  # NULLs are distinct, so unset is fine
    Column("rlname", String(255)),
    Column("location", String(255)),
    Column("avatar", Text, nullable=False, server_default=""),
    Column("password_reset_token", String(64)),
    Column("password_reset_expires", String(32)),
    Column("jwt_version", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked by writers."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_iso() -> str:
    return _now().isoformat()


def _tokens_equal(stored: str, presented: str) -> bool:
    # compare_digest rejects non-ASCII str, so compare the encoded bytes.
    return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///gameportal.db")
        account = store.create("knight", hash_password("secret"), "knight@example.com")
        account = store.find_by_credentials("knight", "secret")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_jwt_version_column()

    def _ensure_jwt_version_column(self) -> None:
        """Add the jwt_version column to accounts tables that predate it."""
        existing_cols = {col["name"] for col in inspect(self.engine).get_columns("accounts")}
        if "jwt_version" in existing_cols:
            return
        with self.engine.connect() as conn:
            conn.execute(text("ALTER TABLE accounts ADD COLUMN jwt_version INTEGER NOT NULL DEFAULT 0"))
            conn.commit()
        logger.info("Migrated accounts table: added jwt_version column")

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, account_id: int) -> Account | None:
        return self._get_one(_accounts.c.id == account_id)

    def get_by_name(self, name: str) -> Account | None:
        """Look up an account by exact name (case-sensitive)."""
        return self._get_one(_accounts.c.name == name)

    def get_by_email(self, email: str) -> Account | None:
        return self._get_one(_accounts.c.email == email)

    def get_by_profile_name(self, profile_name: str) -> Account | None:
        return self._get_one(_accounts.c.profile_name == profile_name)

    def _get_one(self, clause) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(clause)).fetchone()
        return _row_to_account(row) if row is not None else None

    def _require(self, account_id: int) -> Account:
        account = self.get_by_id(account_id)
        if account is None:
            raise NotFound("Account not found.")
        return account

    # ------------------------------------------------------------------
    # Registration and credentials
    # ------------------------------------------------------------------

    def create(self, name: str, password_hash: str, email: str) -> Account:
        """Insert a new account and return it.

        Raises DuplicateName or DuplicateEmail (name is checked first). No
        record is written when either is raised.
        """
        if self.get_by_name(name) is not None:
            raise DuplicateName()
        if self.get_by_email(email) is not None:
            raise DuplicateEmail()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        name=name,
                        password=password_hash,
                        email=email,
                        avatar="",
                        jwt_version=0,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent sign-up; report which key collided.
            if self.get_by_name(name) is not None:
                raise DuplicateName() from exc
            raise DuplicateEmail() from exc
        return self._require(result.inserted_primary_key[0])

    def find_by_credentials(self, name: str, password: str) -> Account | None:
        """Return the account if name and password match, else None.

        Always runs one hash verification whether or not the name exists so
        response time does not reveal registered names. Legacy SHA-1 hashes
        are replaced with bcrypt after a successful check.
        """
        account = self.get_by_name(name)
        if account is None:
            verify_password(password, DUMMY_HASH)
            return None
        if not verify_password(password, account.password):
            return None
        if needs_rehash(account.password):
            self.update_password(account.id, hash_password(password))
            logger.info("Upgraded legacy password hash for account_id=%d", account.id)
            account = self._require(account.id)
        return account

    def update_password(self, account_id: int, password_hash: str) -> None:
        self._update(account_id, password=password_hash)

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def set_reset_token(self, account_id: int, token: str, expires_at: datetime) -> None:
        """Store a reset token, replacing any earlier one."""
        self._update(
            account_id,
            password_reset_token=token,
            password_reset_expires=expires_at.astimezone(timezone.utc).isoformat(),
        )

    def consume_reset_token(self, account_id: int, presented: str, new_password_hash: str) -> Account:
        """Redeem a reset token and set a new password.

        Raises TokenMismatch when no token is stored or it differs from the
        presented one, TokenExpired when the expiry has passed. On success the
        token is cleared and jwt_version is bumped, which invalidates every
        refresh token issued with the old password.
        """
        account = self._require(account_id)
        stored = account.password_reset_token
        if not stored or not _tokens_equal(stored, presented):
            raise TokenMismatch()
        expires = account.password_reset_expires
        if expires is None or _now() > datetime.fromisoformat(expires):
            raise TokenExpired()

        with self.engine.connect() as conn:
            result = conn.execute(
                _accounts.update()
                .where((_accounts.c.id == account_id) & (_accounts.c.password_reset_token == stored))
                .values(
                    password=new_password_hash,
                    password_reset_token=None,
                    password_reset_expires=None,
                    jwt_version=_accounts.c.jwt_version + 1,
                )
            )
            conn.commit()
        if result.rowcount == 0:
            # A concurrent reset redeemed the token first.
            raise TokenMismatch()
        return self._require(account_id)

    # ------------------------------------------------------------------
    # Profile and avatar
    # ------------------------------------------------------------------

    def update_profile_fields(self, account_id: int, update: ProfileUpdate) -> Account:
        """Apply the non-empty fields of update; empty values are ignored."""
        values = {field: value for field, value in asdict(update).items() if value}
        if values:
            self._update(account_id, **values)
        return self._require(account_id)

    def set_profile_name(self, account_id: int, profile_name: str) -> Account:
        """Claim a profile name. Raises DuplicateProfileName if another account holds it."""
        holder = self.get_by_profile_name(profile_name)
        if holder is not None and holder.id != account_id:
            raise DuplicateProfileName()
        try:
            self._update(account_id, profile_name=profile_name)
        except IntegrityError as exc:
            raise DuplicateProfileName() from exc
        return self._require(account_id)

    def set_avatar_path(self, account_id: int, path: str) -> Account:
        """Record the avatar path; pass "" to clear it."""
        self._update(account_id, avatar=path)
        return self._require(account_id)

    # ------------------------------------------------------------------
    # Session version
    # ------------------------------------------------------------------

    def bump_session_version(self, account_id: int) -> int:
        """Increment jwt_version and return the new value.

        Every refresh token stamped with an older version stops working.
        """
        self._update(account_id, jwt_version=_accounts.c.jwt_version + 1)
        return self._require(account_id).jwt_version

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _update(self, account_id: int, **values) -> None:
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            raise NotFound("Account not found.")

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        name=row.name,
        email=row.email,
        password=row.password,
        profile_name=row.profile_name,
        rlname=row.rlname,
        location=row.location,
        avatar=row.avatar or "",
        password_reset_token=row.password_reset_token,
        password_reset_expires=row.password_reset_expires,
        jwt_version=row.jwt_version,
        created_at=row.created_at,
    )
