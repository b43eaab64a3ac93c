"""
auth/policy.py -- AuthPolicy: allow/deny decisions over the auth components.

AuthPolicy is the explicitly constructed context object that replaces
process-wide state: it holds the storage collaborator, the signing secret,
the trusted-integration key and a clock. Construct one at startup and hand it
to whatever needs it (FastAPI: app.state.auth_policy). It keeps no mutable
state of its own, so one instance serves any number of concurrent requests.

Decision procedures (each returns a value or raises from auth.errors):
  authenticate_access_token(header)   -> user id            (401 family)
  authenticate_refresh_token(header)  -> user id            (401 family)
  authorize_ownership(user_id, owner) -> None               (403)
  authorize_integration_key(header)   -> None               (401)

Credential-lifecycle flows built on them:
  register(email, password)  -> User
  login(email, password)     -> TokenPair (rehashes outdated credentials)
  refresh(header)            -> new access token (refresh token not rotated)
  revoke(header)             -> None (idempotent)

Payments integration:
  handle_payment_event(header, event, user_id) -> bool (True if a user was upgraded)
"""

from __future__ import annotations

import hmac
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError

from auth.errors import (
    EmailAlreadyRegistered,
    InvalidAPIKey,
    InvalidCredentials,
    PermissionDenied,
    TokenNotFound,
    UserNotFound,
)
from auth.headers import api_key_from_header, bearer_from_header
from auth.models import TokenPair, User, as_utc
from auth.passwords import authenticate_password, hash_password, needs_rehash
from auth.refresh import (
    REFRESH_TOKEN_LIFETIME,
    check_refresh_token,
    issue_refresh_token,
    revoke_refresh_token,
)
from auth.tokens import ACCESS_TOKEN_LIFETIME, issue_access_token, validate_access_token

if TYPE_CHECKING:
    from auth.store import AuthStore
    from core.config import Settings

logger = logging.getLogger("chirpy.auth")

Clock = Callable[[], datetime]

UPGRADE_EVENT = "user.upgraded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def authorize_ownership(user_id: uuid.UUID, owner_id: uuid.UUID) -> None:
    """Allow only if the authenticated user is the resource's recorded owner.

    Raises PermissionDenied (forbidden), never an authentication error: the
    caller is known, they just may not act on this resource.
    """
    if user_id != owner_id:
        raise PermissionDenied()


class AuthPolicy:
    """Composes password, token and header handling into request decisions."""

    def __init__(
        self,
        store: AuthStore,
        signing_secret: str | bytes,
        integration_key: str = "",
        clock: Clock | None = None,
        access_token_lifetime: timedelta = ACCESS_TOKEN_LIFETIME,
        refresh_token_lifetime: timedelta = REFRESH_TOKEN_LIFETIME,
    ) -> None:
        self.store = store
        self._signing_secret = signing_secret
        self._integration_key = integration_key
        self._clock = clock or _utcnow
        self.access_token_lifetime = access_token_lifetime
        self.refresh_token_lifetime = refresh_token_lifetime

    def now(self) -> datetime:
        """Current instant from the injected clock, as an aware UTC datetime."""
        return as_utc(self._clock())

    # ------------------------------------------------------------------
    # Decision procedures
    # ------------------------------------------------------------------

    def authenticate_access_token(self, header: str | None) -> uuid.UUID:
        """Bearer header -> validated access token -> user id.

        Propagates MalformedHeader, SignatureInvalid, TokenExpired,
        WrongIssuer or MalformedSubject unchanged.
        """
        token = bearer_from_header(header)
        return validate_access_token(token, self._signing_secret, now=self.now())

    def authenticate_refresh_token(self, header: str | None) -> uuid.UUID:
        """Bearer header -> stored refresh token -> owning user id.

        Raises TokenNotFound if the token was never issued, TokenRevoked if
        it has been revoked, TokenExpired once its 60 days are over.
        """
        token = bearer_from_header(header)
        record = self.store.get_refresh_token(token)
        if record is None:
            raise TokenNotFound()
        check_refresh_token(record, self.now())
        return record.user_id

    def authorize_ownership(self, user_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        authorize_ownership(user_id, owner_id)

    def authorize_integration_key(self, header: str | None) -> None:
        """Check an ``ApiKey <key>`` header against the configured integration key.

        Uses hmac.compare_digest so the comparison time does not depend on
        how many leading characters match. An unconfigured (empty) key
        rejects everything.
        """
        key = api_key_from_header(header)
        if not self._integration_key:
            raise InvalidAPIKey("Integration key is not configured.")
        if not hmac.compare_digest(key.encode("utf-8"), self._integration_key.encode("utf-8")):
            raise InvalidAPIKey()

    # ------------------------------------------------------------------
    # Credential lifecycle
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> User:
        """Hash the password and persist a new user.

        Raises EmailAlreadyRegistered on a duplicate email, HashError if
        Argon2 fails.
        """
        user = User(email=email, hashed_password=hash_password(password))
        try:
            return self.store.create_user(user)
        except IntegrityError as exc:
            raise EmailAlreadyRegistered() from exc

    def login(self, email: str, password: str) -> TokenPair:
        """Check email + password and issue an access/refresh token pair.

        A failed password check is a hard stop: InvalidCredentials is raised
        and no token of either kind is issued. A credential made with older
        Argon2 parameters is replaced while the plaintext is at hand.
        """
        user = authenticate_password(self.store, email, password)
        if user is None:
            logger.info("Login rejected: invalid credentials")
            raise InvalidCredentials()
        now = self.now()
        if needs_rehash(user.hashed_password):
            user.hashed_password = hash_password(password)
            self.store.update_password(user.id, user.hashed_password, updated_at=now)
            user.updated_at = now
            logger.info("Password credential rehashed with current parameters")
        access_token = issue_access_token(user.id, self._signing_secret, now=now, lifetime=self.access_token_lifetime)
        refresh_token = issue_refresh_token(self.store, user.id, now=now, lifetime=self.refresh_token_lifetime)
        return TokenPair(user=user, access_token=access_token, refresh_token=refresh_token)

    def refresh(self, header: str | None) -> str:
        """Exchange a usable refresh token for a fresh access token."""
        user_id = self.authenticate_refresh_token(header)
        return issue_access_token(user_id, self._signing_secret, now=self.now(), lifetime=self.access_token_lifetime)

    def revoke(self, header: str | None) -> None:
        """Revoke the refresh token in a Bearer header. Idempotent."""
        token = bearer_from_header(header)
        revoke_refresh_token(self.store, token, now=self.now())

    # ------------------------------------------------------------------
    # Payments integration
    # ------------------------------------------------------------------

    def handle_payment_event(self, header: str | None, event: str, user_id: str | uuid.UUID) -> bool:
        """Apply a payments-provider webhook event.

        The integration key is checked first (InvalidAPIKey / MalformedHeader).
        Events other than "user.upgraded" are acknowledged and ignored:
        returns False. For an upgrade, user_id must name an existing user,
        otherwise UserNotFound; on success the premium flag is set and True
        is returned. Repeating an upgrade is harmless.
        """
        self.authorize_integration_key(header)
        if event != UPGRADE_EVENT:
            logger.debug("Ignoring payments event %r", event)
            return False
        try:
            target = user_id if isinstance(user_id, uuid.UUID) else uuid.UUID(user_id)
        except (TypeError, ValueError) as exc:
            raise UserNotFound("User id is not valid.") from exc
        if not self.store.upgrade_user_red(target):
            raise UserNotFound()
        logger.info("User upgraded to Chirpy Red")
        return True


def build_auth_policy(settings: Settings, store: AuthStore, clock: Clock | None = None) -> AuthPolicy:
    """Wire Settings into an AuthPolicy."""
    return AuthPolicy(
        store=store,
        signing_secret=settings.jwt_secret,
        integration_key=settings.polka_key,
        clock=clock,
        access_token_lifetime=timedelta(seconds=settings.access_token_expire_seconds),
        refresh_token_lifetime=timedelta(days=settings.refresh_token_expire_days),
    )
