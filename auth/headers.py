"""
auth/headers.py -- Authorization header parsing.

Two schemes share one arity rule: the header value must split on a single
space into exactly two segments, and the second segment is the credential.

  Authorization: Bearer <token>   -- access and refresh tokens
  Authorization: ApiKey <key>     -- payments integration (Polka)

The scheme word itself is not checked here; what the credential is worth is
decided by the validator or the policy that consumes it.
"""

from __future__ import annotations

from auth.errors import MalformedHeader


def _split_credential(value: str | None, scheme: str) -> str:
    if not value:
        raise MalformedHeader(f"Missing Authorization header ({scheme}).")
    parts = value.split(" ")
    if len(parts) != 2 or not parts[1]:
        raise MalformedHeader(f"Authorization header must be '{scheme} <credential>'.")
    return parts[1]


def bearer_from_header(value: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    return _split_credential(value, "Bearer")


def api_key_from_header(value: str | None) -> str:
    """Return the key from an ``Authorization: ApiKey <key>`` header value."""
    return _split_credential(value, "ApiKey")
