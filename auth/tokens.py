"""
auth/tokens.py -- Access token issue and validation (HS256 JWT).

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with the configured signing
       secret and carry exactly four claims:
         iss  "access" -- distinguishes access tokens from anything else
              signed with the same secret
         sub  the user's UUID
         iat  issue time (epoch seconds)
         exp  iat + 1 hour
       Nothing is persisted; validity is signature + claims + the clock.

  Validation order is fixed so the caller always gets the most specific
  failure: signature -> expiry -> issuer -> subject. Signature and structure
  errors are indistinguishable on purpose (both SignatureInvalid): a token
  we cannot verify tells us nothing trustworthy about its claims.

  Clock injection: python-jose's own exp check always reads the wall clock,
  so it is disabled and the comparison is done here against ``now``. Both
  functions are pure functions of their arguments and ``now``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import MalformedSubject, SignatureInvalid, TokenExpired, WrongIssuer
from auth.models import as_utc

logger = logging.getLogger("chirpy.auth")

ALGORITHM = "HS256"
ACCESS_TOKEN_ISSUER = "access"
ACCESS_TOKEN_LIFETIME = timedelta(hours=1)

# Every claim check python-jose would do on its own is switched off; the
# checks below run against the injected clock instead.
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_iat": False,
    "verify_nbf": False,
    "verify_iss": False,
    "verify_sub": False,
    "verify_aud": False,
    "verify_jti": False,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------


def issue_access_token(
    user_id: uuid.UUID,
    signing_secret: str | bytes,
    now: datetime | None = None,
    lifetime: timedelta = ACCESS_TOKEN_LIFETIME,
) -> str:
    """Encode a signed access token for user_id.

    Returns the compact JWS form: three dot-separated base64url segments.
    """
    issued = as_utc(now or _utcnow())
    iat = int(issued.timestamp())
    claims = {
        "iss": ACCESS_TOKEN_ISSUER,
        "sub": str(user_id),
        "iat": iat,
        "exp": iat + int(lifetime.total_seconds()),
    }
    return jwt.encode(claims, signing_secret, algorithm=ALGORITHM)


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------


def validate_access_token(token: str, signing_secret: str | bytes, now: datetime | None = None) -> uuid.UUID:
    """Verify an access token and return the user id it was issued for.

    Raises:
        SignatureInvalid: tampered token, wrong secret, or not a JWT at all.
        TokenExpired:     now >= exp (or exp missing).
        WrongIssuer:      iss is not "access".
        MalformedSubject: sub is not a UUID.
    """
    try:
        claims = jwt.decode(token, signing_secret, algorithms=[ALGORITHM], options=_DECODE_OPTIONS)
    except JWTError as exc:
        raise SignatureInvalid() from exc

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        raise TokenExpired("Token has no valid expiry.")
    current = as_utc(now or _utcnow())
    if current.timestamp() >= exp:
        raise TokenExpired()

    if claims.get("iss") != ACCESS_TOKEN_ISSUER:
        raise WrongIssuer()

    subject = claims.get("sub")
    if not isinstance(subject, str):
        raise MalformedSubject()
    try:
        return uuid.UUID(subject)
    except ValueError as exc:
        raise MalformedSubject() from exc
