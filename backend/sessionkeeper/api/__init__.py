"""HTTP surface: versioned blueprints mounted under ``API_BASE_PREFIX``."""

from __future__ import annotations

from collections.abc import Iterable

from flask import Blueprint, Flask


def _join(*segments: str) -> str:
    return "/" + "/".join(s.strip("/") for s in segments if s.strip("/"))


def mount_version(app: Flask, version: str, registry: Iterable[tuple[Blueprint, str]]) -> None:
    """Register each ``(blueprint, path)`` of ``registry`` below ``<API_BASE_PREFIX>/<version>``.

    An empty ``path`` mounts the blueprint at the version root (``/api/v1/health``).
    """
    base = app.config.get("API_BASE_PREFIX", "/api")
    for bp, path in registry:
        app.register_blueprint(bp, url_prefix=_join(base, version, path))


def init_app(app: Flask) -> None:
    from sessionkeeper.api.v1 import API_VERSION, REGISTRY

    mount_version(app, API_VERSION, REGISTRY)


__all__ = ["init_app", "mount_version"]
