"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Loads .env in development (no-op when missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, ``default`` when unset or blank."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


def env_float(name: str, default: float) -> float:
    """Parse a float from an environment variable, ``default`` when unset or blank."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Defaults to a development-safe placeholder.
    JWT_SECRET_KEY: str
        Key used by ``flask-jwt-extended`` for signing access credentials.
    REDIS_URL: str
        Connection URL of the TTL store.
    REFRESH_TTL: int
        Refresh record lifetime in seconds (7 days).
    ACCESS_TTL: int
        Access credential lifetime in seconds (15 minutes).
    MAX_SESSIONS_PER_USER: int
        Session set cap; the oldest sessions are evicted beyond it.
    LOCKOUT_THRESHOLD: int
        Consecutive failed sign-ins that engage the lock.
    LOCKOUT_COOLDOWN: int
        Lock duration in seconds.
    LOCKOUT_WINDOW: int
        Lifetime in seconds of the failure counter.
    STORE_OP_TIMEOUT: float
        Per-command store timeout in seconds.
    STORE_DEGRADED_LATENCY: float
        Health-probe latency (seconds) above which the store is reported degraded.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")

    # Store
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    STORE_OP_TIMEOUT = env_float("STORE_OP_TIMEOUT", 2.0)
    STORE_DEGRADED_LATENCY = env_float("STORE_DEGRADED_LATENCY", 0.25)

    # Sessions
    REFRESH_TTL = env_int("REFRESH_TTL", 7 * 24 * 3600)
    ACCESS_TTL = env_int("ACCESS_TTL", 15 * 60)
    MAX_SESSIONS_PER_USER = env_int("MAX_SESSIONS_PER_USER", 5)

    # Lockout
    LOCKOUT_THRESHOLD = env_int("LOCKOUT_THRESHOLD", 5)
    LOCKOUT_COOLDOWN = env_int("LOCKOUT_COOLDOWN", 15 * 60)
    LOCKOUT_WINDOW = env_int("LOCKOUT_WINDOW", 15 * 60)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Proxy
    PROXY_HOPS = env_int("PROXY_HOPS", 1)

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Tests inject an in-memory Redis through ``REDIS_CLIENT`` instead of
      connecting to ``REDIS_URL``.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    REDIS_URL = os.getenv("TEST_REDIS_URL", "redis://localhost:6379/15")
    MAX_SESSIONS_PER_USER = 3
    LOCKOUT_THRESHOLD = 3
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments."""

    DEBUG = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
