"""Reverse-proxy awareness for client address capture."""

from __future__ import annotations

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix


def init_app(app: Flask) -> None:
    """Trust ``X-Forwarded-*`` headers from ``PROXY_HOPS`` upstream proxies.

    Session records keep the client's address (``request.remote_addr``), which
    is the proxy's address unless forwarded headers are honored. Set
    ``PROXY_HOPS`` to ``0`` when the app is exposed directly.
    """
    hops = int(app.config.get("PROXY_HOPS", 1))
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)
