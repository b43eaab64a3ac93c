"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

These adapt AuthPolicy to the request-handling layer. The policy is read from
``request.app.state.auth_policy`` (built once at startup with
build_auth_policy()), never from a module global.

Error translation keeps the two failure families apart:
  AuthenticationError -> HTTP 401 {"code": ..., "message": ...}
  AuthorizationError  -> HTTP 403 {"code": ..., "message": ...}
Anything else (HashError, database errors) propagates as a 500.

Layer rule: auth/dependencies.py may import from fastapi (for
Depends/HTTPException/Request) because this module is part of the FastAPI
dependency injection system.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import HTTPException, Request

from auth.errors import AuthenticationError, AuthError, AuthorizationError
from auth.policy import AuthPolicy

logger = logging.getLogger("chirpy.auth")


def http_error(exc: AuthError) -> HTTPException:
    """Map an auth error onto the matching HTTPException (401 or 403)."""
    if isinstance(exc, AuthorizationError):
        return HTTPException(status_code=403, detail=exc.detail)
    if isinstance(exc, AuthenticationError):
        return HTTPException(status_code=401, detail=exc.detail)
    raise TypeError(f"{type(exc).__name__} has no HTTP mapping") from exc


def get_auth_policy(request: Request) -> AuthPolicy:
    return request.app.state.auth_policy


def get_current_user_id(request: Request) -> uuid.UUID:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.post("/api/chirps")
        async def route(user_id: uuid.UUID = Depends(get_current_user_id)): ...
    """
    policy = get_auth_policy(request)
    try:
        return policy.authenticate_access_token(request.headers.get("Authorization"))
    except AuthenticationError as exc:
        logger.info("Access token rejected: %s", exc.code)
        raise http_error(exc) from exc


def get_refresh_user_id(request: Request) -> uuid.UUID:
    """Require a usable refresh token. Raises HTTP 401 otherwise."""
    policy = get_auth_policy(request)
    try:
        return policy.authenticate_refresh_token(request.headers.get("Authorization"))
    except AuthenticationError as exc:
        logger.info("Refresh token rejected: %s", exc.code)
        raise http_error(exc) from exc


def require_integration_key(request: Request) -> None:
    """Require ``Authorization: ApiKey <key>`` matching the configured key. HTTP 401 otherwise."""
    policy = get_auth_policy(request)
    try:
        policy.authorize_integration_key(request.headers.get("Authorization"))
    except AuthenticationError as exc:
        logger.warning("Integration key rejected: %s", exc.code)
        raise http_error(exc) from exc


def require_owner(request: Request, user_id: uuid.UUID, owner_id: uuid.UUID) -> None:
    """Raise HTTP 403 unless user_id owns the resource.

    Called from a route body once the resource has been loaded:
        require_owner(request, user_id, chirp.user_id)
    """
    policy = get_auth_policy(request)
    try:
        policy.authorize_ownership(user_id, owner_id)
    except AuthorizationError as exc:
        logger.info("Ownership check failed: %s", exc.code)
        raise http_error(exc) from exc
