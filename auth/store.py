"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
AuthStore is the repository; _row_to_user / _row_to_refresh_token are the
mappers. The policy and dependency code never touch SQL directly.

This is the storage collaborator the auth core consumes:
  create_refresh_token / get_refresh_token / revoke_refresh_token,
  get_user_by_refresh_token, get_user_by_email (password-credential lookup),
  plus the user-lifecycle queries the login and payments flows need.

Security:
  All queries use bound parameters. No f-strings in SQL.

Timestamps are stored as ISO 8601 UTC strings (SQLite has no tz-aware
DATETIME) and parsed back into aware datetimes by the mappers, so callers
can compare them against datetime.now(timezone.utc) directly.

UUIDs are stored as their 36-char canonical string form.

Concurrency: each method is a single short transaction on its own pooled
connection. Revocation is one UPDATE -- there is no multi-step invariant to
protect, so no explicit locking is done here.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Column, ForeignKey, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine

from auth.models import RefreshToken, User, as_utc
from core.config import DEFAULT_DATABASE_URL

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("chirpy.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("is_chirpy_red", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("token", String(64), primary_key=True),  # 64 hex chars
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("revoked_at", String(32)),  # NULL = active
)


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def _parse(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for User and RefreshToken records.

    Usage:
        store = AuthStore()
        store.create_user(User(email="a@example.com", hashed_password=hash_password("secret")))
        user = store.get_user_by_email("a@example.com")
        store.close()
    """

    def __init__(self, db_url: str = DEFAULT_DATABASE_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> User:
        """Insert a new user and return it with timestamps filled in.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        now = _now()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=str(user.id),
                    email=user.email,
                    hashed_password=user.hashed_password,
                    is_chirpy_red=user.is_chirpy_red,
                    created_at=_iso(now),
                    updated_at=_iso(now),
                )
            )
            conn.commit()
        user.created_at = now
        user.updated_at = now
        return user

    def get_user_by_email(self, email: str) -> User | None:
        """Look up a user (and thus its password credential) by exact email."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_id(self, user_id: uuid.UUID) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == str(user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_password(self, user_id: uuid.UUID, hashed_password: str, updated_at: datetime | None = None) -> bool:
        """Replace a user's password credential. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == str(user_id))
                .values(hashed_password=hashed_password, updated_at=_iso(updated_at or _now()))
            )
            conn.commit()
        return result.rowcount > 0

    def upgrade_user_red(self, user_id: uuid.UUID) -> bool:
        """Set the premium flag. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == str(user_id))
                .values(is_chirpy_red=True, updated_at=_iso(_now()))
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def create_refresh_token(
        self,
        token: str,
        user_id: uuid.UUID,
        expires_at: datetime,
        created_at: datetime | None = None,
    ) -> RefreshToken:
        """Persist a freshly minted refresh token for user_id.

        created_at defaults to the wall clock; callers on an injected clock
        pass the same instant they computed expires_at from.

        Raises sqlalchemy.exc.IntegrityError if user_id does not exist or the
        token collides with an existing one (2^-256 -- effectively never).
        """
        now = as_utc(created_at or _now())
        with self.engine.connect() as conn:
            conn.execute(
                _refresh_tokens.insert().values(
                    token=token,
                    user_id=str(user_id),
                    created_at=_iso(now),
                    updated_at=_iso(now),
                    expires_at=_iso(expires_at),
                    revoked_at=None,
                )
            )
            conn.commit()
        return RefreshToken(
            token=token,
            user_id=user_id,
            expires_at=_parse(_iso(expires_at)),
            created_at=now,
            updated_at=now,
        )

    def get_refresh_token(self, token: str) -> RefreshToken | None:
        with self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token == token)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def revoke_refresh_token(self, token: str, revoked_at: datetime | None = None) -> bool:
        """Stamp revoked_at on an active token.

        Already-revoked tokens keep their original revoked_at. Returns True if
        a row changed, False if the token was unknown or already revoked.
        """
        stamp = _iso(revoked_at or _now())
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where((_refresh_tokens.c.token == token) & (_refresh_tokens.c.revoked_at.is_(None)))
                .values(revoked_at=stamp, updated_at=stamp)
            )
            conn.commit()
        return result.rowcount > 0

    def get_user_by_refresh_token(self, token: str) -> User | None:
        """Return the owner of a refresh token, regardless of its state."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select()
                .select_from(_users.join(_refresh_tokens, _refresh_tokens.c.user_id == _users.c.id))
                .where(_refresh_tokens.c.token == token)
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_refresh_tokens(self, user_id: uuid.UUID) -> list[RefreshToken]:
        """Return every refresh token owned by user_id, newest first.

        One record per login session, revoked and expired ones included.
        Used for session listings and by the tests; the request-time checks
        only ever look a token up by value.
        """
        with self.engine.connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select()
                .where(_refresh_tokens.c.user_id == str(user_id))
                .order_by(_refresh_tokens.c.created_at.desc())
            ).fetchall()
        return [_row_to_refresh_token(r) for r in rows]


def build_auth_store(settings: Settings) -> AuthStore:
    """Open the AuthStore at settings.database_url."""
    store = AuthStore(settings.database_url)
    logger.info("Auth store opened at %s", store.engine.url.render_as_string(hide_password=True))
    return store


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    m = row._mapping
    return User(
        id=uuid.UUID(m["id"]),
        email=m["email"],
        hashed_password=m["hashed_password"],
        is_chirpy_red=bool(m["is_chirpy_red"]),
        created_at=_parse(m["created_at"]),
        updated_at=_parse(m["updated_at"]),
    )


def _row_to_refresh_token(row) -> RefreshToken:
    m = row._mapping
    return RefreshToken(
        token=m["token"],
        user_id=uuid.UUID(m["user_id"]),
        created_at=_parse(m["created_at"]),
        updated_at=_parse(m["updated_at"]),
        expires_at=_parse(m["expires_at"]),
        revoked_at=_parse(m["revoked_at"]),
    )
