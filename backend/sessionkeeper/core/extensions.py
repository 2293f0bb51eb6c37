"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from sessionkeeper.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from sessionkeeper.infra.redis.store_client import RedisStoreClient
from sessionkeeper.services.sessions import SessionService, SessionSettings

# Global singletons (import-safe)
jwt = JWTManager()

SESSION_SERVICE_KEY = "session_service"


def _build_store(app: Flask, settings: SessionSettings) -> RedisStoreClient:
    injected = app.config.get("REDIS_CLIENT")
    if injected is not None:
        return RedisStoreClient(r=injected, degraded_latency=settings.store_degraded_latency)

    redis_url = app.config["REDIS_URL"]
    store = RedisStoreClient.from_url(
        redis_url,
        op_timeout=settings.store_op_timeout,
        degraded_latency=settings.store_degraded_latency,
    )
    try:
        store.r.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    return store


def init_app(app: Flask) -> None:
    """Initialize JWT, the Redis connection and the session service.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. ``REDIS_CLIENT`` in the
        config takes precedence over ``REDIS_URL`` (tests inject fakeredis).
    """
    jwt.init_app(app)

    settings = SessionSettings.from_mapping(app.config)
    store = _build_store(app, settings)

    app.extensions["redis_client"] = store.r
    app.extensions[SESSION_SERVICE_KEY] = SessionService(
        store=store,
        token_provider=JWTTokenProvider(),
        settings=settings,
    )


@jwt.token_in_blocklist_loader
def _is_revoked(_jwt_header: dict, jwt_payload: dict) -> bool:
    # Store failures propagate as StoreUnavailable (503), never "not revoked"
    return get_session_service().is_blacklisted(jwt_payload["jti"])


def get_session_service() -> SessionService:
    """Return the session service bound to the current application."""
    try:
        return current_app.extensions[SESSION_SERVICE_KEY]
    except KeyError as exc:
        raise RuntimeError("Session service is not initialized. Call init_app() first.") from exc
