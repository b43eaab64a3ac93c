"""
auth/errors.py -- Error taxonomy for the authentication core.

Every failure the core can report is a subclass of AuthError carrying a
stable machine-readable ``code``. The two middle classes decide how the
request-handling layer answers:

  AuthenticationError -> "unauthenticated" (HTTP 401)
  AuthorizationError  -> "forbidden"       (HTTP 403)

The split is preserved through the whole call chain; callers catch the
intermediate class, never a generic Exception, so a forbidden request is
never reported as unauthenticated or the other way around.

Messages never include tokens, keys, or passwords.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by auth/."""

    code: str = "auth_error"
    message: str = "Authentication core error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)

    @property
    def detail(self) -> dict:
        return {"code": self.code, "message": str(self)}


class HashError(AuthError):
    """Password hashing failed inside the Argon2 library (randomness / allocation).

    Not caused by the plaintext. Fatal to the request and not retryable.
    """

    code = "hash_error"
    message = "Password hashing failed."


# ---------------------------------------------------------------------------
# Unauthenticated
# ---------------------------------------------------------------------------


class AuthenticationError(AuthError):
    code = "unauthorized"
    message = "Authentication required."


class MalformedHeader(AuthenticationError):
    code = "malformed_header"
    message = "Authorization header is missing or malformed."


class SignatureInvalid(AuthenticationError):
    code = "signature_invalid"
    message = "Token signature is invalid."


class TokenExpired(AuthenticationError):
    code = "token_expired"
    message = "Token has expired."


class WrongIssuer(AuthenticationError):
    code = "wrong_issuer"
    message = "Token issuer is not accepted."


class MalformedSubject(AuthenticationError):
    code = "malformed_subject"
    message = "Token subject is not a valid user id."


class TokenNotFound(AuthenticationError):
    code = "token_not_found"
    message = "Refresh token not found."


class TokenRevoked(AuthenticationError):
    code = "token_revoked"
    message = "Refresh token has been revoked."


class InvalidAPIKey(AuthenticationError):
    code = "invalid_api_key"
    message = "API key is not valid."


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    message = "Incorrect email or password."


# ---------------------------------------------------------------------------
# Forbidden
# ---------------------------------------------------------------------------


class AuthorizationError(AuthError):
    code = "forbidden"
    message = "Permission denied."


class PermissionDenied(AuthorizationError):
    code = "permission_denied"
    message = "You do not own this resource."


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class EmailAlreadyRegistered(AuthError):
    code = "email_taken"
    message = "Email already registered."


# ---------------------------------------------------------------------------
# Payments integration
# ---------------------------------------------------------------------------


class UserNotFound(AuthError):
    """A trusted-integration event named a user id that does not exist."""

    code = "user_not_found"
    message = "User not found."
