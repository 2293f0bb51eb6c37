"""Cross-origin policy for the ``/api`` routes."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

# Clients back off on Retry-After and quote X-Request-ID in bug reports
EXPOSED_HEADERS = ["Retry-After", "X-Request-ID"]
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Request-ID"]


def parse_origins(raw: str | None) -> list[str] | str:
    """Return ``"*"`` for a blank or wildcard setting, else the listed origins."""
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    if not origins or "*" in origins:
        return "*"
    return origins


def init_app(app: Flask) -> None:
    """Apply ``CORS_ORIGINS``; credentials are only allowed for explicit origins."""
    origins = parse_origins(app.config.get("CORS_ORIGINS"))
    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=origins != "*",
        allow_headers=ALLOWED_HEADERS,
        expose_headers=EXPOSED_HEADERS,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
