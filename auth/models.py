"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
policy do the work; these only own the shape of a record.

Layer rule: stdlib only.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass
class User:
    """A registered principal.

    id is a random UUID assigned at construction and never reused.
    hashed_password is an Argon2id PHC string -- one per user, replaced only
    on re-registration of the credential, never decrypted.
    is_chirpy_red is the premium flag flipped by the payments integration.
    """

    email: str
    hashed_password: str
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    is_chirpy_red: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class RefreshToken:
    """A persisted opaque refresh token (64 lowercase hex chars).

    The record is created once and mutated only by revocation, which sets
    revoked_at. Several records may exist per user -- one per session.
    """

    token: str
    user_id: uuid.UUID
    expires_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None
    revoked_at: datetime | None = None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) >= as_utc(self.expires_at)


@dataclass(frozen=True)
class TokenPair:
    """Credentials returned by a successful login."""

    user: User
    access_token: str
    refresh_token: str
