"""
auth/refresh.py -- Opaque refresh tokens: mint, persist, revoke, check.

A refresh token is secrets.token_hex(32): 32 random bytes from the OS CSPRNG
as 64 lowercase hex characters (256 bits). It carries no claims; everything
about it (owner, expiry, revocation) lives in the refresh_tokens table, which
is why it can be revoked while access tokens cannot.

Lifetime is 60 days from creation. Refreshing does not rotate the token --
the same refresh token keeps producing access tokens until it expires or is
revoked.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from auth.errors import TokenExpired, TokenRevoked
from auth.models import as_utc

if TYPE_CHECKING:
    from auth.models import RefreshToken
    from auth.store import AuthStore

logger = logging.getLogger("chirpy.auth")

REFRESH_TOKEN_BYTES = 32
REFRESH_TOKEN_LIFETIME = timedelta(days=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mint_refresh_token() -> str:
    """Return a new 64-char hex refresh token. Not persisted."""
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def issue_refresh_token(
    store: AuthStore,
    user_id: uuid.UUID,
    now: datetime | None = None,
    lifetime: timedelta = REFRESH_TOKEN_LIFETIME,
) -> str:
    """Mint a refresh token for user_id and persist it.

    created_at and expires_at both derive from the same ``now``, so the
    stored record always spans exactly ``lifetime``.
    """
    issued = as_utc(now or _utcnow())
    token = mint_refresh_token()
    store.create_refresh_token(token, user_id, issued + lifetime, created_at=issued)
    return token


def revoke_refresh_token(store: AuthStore, token: str, now: datetime | None = None) -> bool:
    """Mark a refresh token revoked.

    Idempotent: an unknown or already-revoked token is not an error. Returns
    True only when this call changed a row.
    """
    changed = store.revoke_refresh_token(token, as_utc(now or _utcnow()))
    if not changed:
        logger.info("Refresh token revocation was a no-op (unknown or already revoked)")
    return changed


def check_refresh_token(record: RefreshToken, now: datetime | None = None) -> None:
    """Raise unless an existing refresh token record is usable at ``now``.

    Revocation and expiry are independent conditions; both must pass.
    Revocation is reported first because it is the deliberate state.
    """
    if record.is_revoked:
        raise TokenRevoked()
    if record.is_expired(as_utc(now or _utcnow())):
        raise TokenExpired("Refresh token has expired.")
