"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app

from sessionkeeper.api.deps import json_response, timing
from sessionkeeper.core.extensions import get_session_service
from sessionkeeper.schemas import HealthSchema
from sessionkeeper.services._shared.ports import Health

bp = Blueprint("health", __name__)

health_schema = HealthSchema()


@bp.get("/health")
@timing
def healthcheck():
    """Return application and store health (live probe, never cached)."""

    report = get_session_service().health()
    payload = health_schema.dump(
        {
            "status": "ok" if report.status is not Health.UNAVAILABLE else "fail",
            "store": report.status.value,
            "latency_ms": report.latency_ms,
            "version": current_app.config.get("APP_VERSION", "dev"),
            "commit": current_app.config.get("APP_COMMIT", "unknown"),
        }
    )
    return json_response(payload, status=503 if report.status is Health.UNAVAILABLE else 200)
