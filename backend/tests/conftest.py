"""Pytest fixtures wiring the session services to an in-memory Redis.

Each test gets a fresh :class:`fakeredis.FakeRedis` (its own ``FakeServer``),
so keys never leak between cases. Service-level tests run under freezegun through
:class:`FrozenClock` and the deterministic :class:`StubTokenProvider`; HTTP
tests run the real application factory with the fake Redis injected.
"""

from __future__ import annotations

from datetime import timedelta

import fakeredis
import pytest
from freezegun import freeze_time
from sessionkeeper.core.config import TestingConfig
from sessionkeeper.factory import create_app
from sessionkeeper.infra.redis.store_client import RedisStoreClient
from sessionkeeper.services._shared.ports import StubTokenProvider
from sessionkeeper.services.sessions import SessionService, SessionSettings
from tests.helpers.clock import FrozenClock
from tests.helpers.stores import FlakyStore

JWT_TEST_SECRET = "test-jwt-secret-key-with-enough-entropy-0123456789"
FROZEN_START = "2024-01-01 12:00:00"


@pytest.fixture
def redis_server():
    """Provide an isolated fake Redis server (toggle ``connected`` to simulate outages)."""
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(redis_server):
    """Provide a fresh FakeRedis client bound to ``redis_server``."""
    r = fakeredis.FakeRedis(server=redis_server)
    r.flushall()
    return r


@pytest.fixture
def store(fake_redis) -> RedisStoreClient:
    """Tagged-result store client backed by FakeRedis."""
    return RedisStoreClient(r=fake_redis)


@pytest.fixture
def flaky(store) -> FlakyStore:
    """Store double that injects failures into selected primitives."""
    return FlakyStore(store)


@pytest.fixture
def frozen_time():
    """Freeze wall-clock time for one test (datetime, ``time.time`` and fakeredis expiry)."""
    with freeze_time(FROZEN_START) as frozen:
        yield frozen


@pytest.fixture
def clock(frozen_time) -> FrozenClock:
    """UTC clock that moves only when advanced; Redis TTLs move with it."""
    return FrozenClock(frozen_time)


@pytest.fixture
def tokens(clock) -> StubTokenProvider:
    return StubTokenProvider(clock=clock)


@pytest.fixture
def settings() -> SessionSettings:
    """Small caps and thresholds so limits are reached quickly."""
    return SessionSettings(
        refresh_ttl=timedelta(days=7),
        access_ttl=timedelta(minutes=15),
        max_sessions_per_user=3,
        lockout_threshold=3,
        lockout_cooldown=timedelta(minutes=15),
        lockout_window=timedelta(minutes=15),
    )


@pytest.fixture
def service(flaky, tokens, settings, clock) -> SessionService:
    """SessionService wired to the failure-injecting store double."""
    return SessionService(store=flaky, token_provider=tokens, settings=settings, clock=clock)


@pytest.fixture
def app(fake_redis):
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied, FakeRedis
        injected and logging noise reduced.
    """
    app = create_app(
        TestingConfig,
        instance_relative_config=False,
        overrides={"REDIS_CLIENT": fake_redis, "JWT_SECRET_KEY": JWT_TEST_SECRET},
    )
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_service(app) -> SessionService:
    """The SessionService instance the application serves requests with."""
    return app.extensions["session_service"]
