"""
tests/conftest.py -- Shared test fixtures for the chirpy-auth test suite.

This module provides:
  - FrozenClock: a settable, advanceable clock injected into AuthPolicy so
    expiry scenarios run without sleeping
  - store: isolated in-memory AuthStore per test
  - policy: AuthPolicy over that store with a frozen clock
  - registered_user: (User, password) created through policy.register()
  - api_client: TestClient over a minimal FastAPI app wired with the
    dependency helpers from auth/dependencies.py

Design: the api_client store uses a named shared-memory SQLite URI rather
than plain :memory:, because TestClient runs sync dependencies in a thread
pool and a plain :memory: DB is per-connection -- worker threads would see a
blank schema.

The DEBUG env var is set before any core import so Settings() can be built
without a real JWT_SECRET.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.testclient import TestClient

from auth.dependencies import (
    get_current_user_id,
    get_refresh_user_id,
    http_error,
    require_integration_key,
    require_owner,
)
from auth.errors import AuthenticationError, UserNotFound
from auth.models import User
from auth.policy import AuthPolicy
from auth.store import AuthStore

SIGNING_SECRET = "test-signing-secret-0123456789abcdef"
POLKA_KEY = "f271c81ff7084ee5b99a5091b42d486e"

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> Generator[AuthStore, None, None]:
    s = AuthStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def policy(store: AuthStore, clock: FrozenClock) -> AuthPolicy:
    return AuthPolicy(store=store, signing_secret=SIGNING_SECRET, integration_key=POLKA_KEY, clock=clock)


@pytest.fixture
def registered_user(policy: AuthPolicy) -> tuple[User, str]:
    password = "04234"
    user = policy.register("walt@breakingbad.com", password)
    return user, password


# ---------------------------------------------------------------------------
# FastAPI adapter fixture
# ---------------------------------------------------------------------------


def _build_app(policy: AuthPolicy) -> FastAPI:
    """Minimal app exercising each dependency helper once."""
    app = FastAPI()
    app.state.auth_policy = policy

    @app.get("/whoami")
    def whoami(user_id: uuid.UUID = Depends(get_current_user_id)) -> dict:
        return {"user_id": str(user_id)}

    @app.post("/refresh")
    def refresh(request: Request, user_id: uuid.UUID = Depends(get_refresh_user_id)) -> dict:
        token = request.app.state.auth_policy.refresh(request.headers.get("Authorization"))
        return {"token": token, "user_id": str(user_id)}

    @app.post("/webhooks", status_code=204, dependencies=[Depends(require_integration_key)])
    def webhook() -> None:
        return None

    @app.post("/upgrades", status_code=204)
    def upgrade(request: Request, payload: dict = Body(...)) -> None:
        try:
            request.app.state.auth_policy.handle_payment_event(
                request.headers.get("Authorization"),
                payload.get("event", ""),
                payload.get("data", {}).get("user_id", ""),
            )
        except AuthenticationError as exc:
            raise http_error(exc) from exc
        except UserNotFound as exc:
            raise HTTPException(status_code=404, detail=exc.detail) from exc

    @app.delete("/resources/{owner_id}", status_code=204)
    def delete_resource(
        owner_id: uuid.UUID, request: Request, user_id: uuid.UUID = Depends(get_current_user_id)
    ) -> None:
        require_owner(request, user_id, owner_id)

    return app


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthPolicy], None, None]:
    """Yield (client, policy) backed by a module-private shared-memory store.

    The policy uses the real clock: requests go through real header parsing
    and token validation end to end.
    """
    db_name = f"test_auth_{request.module.__name__.rsplit('.', 1)[-1]}"
    store = AuthStore(db_url=f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true")
    policy = AuthPolicy(store=store, signing_secret=SIGNING_SECRET, integration_key=POLKA_KEY)

    with TestClient(_build_app(policy), raise_server_exceptions=True) as client:
        yield client, policy

    store.close()
