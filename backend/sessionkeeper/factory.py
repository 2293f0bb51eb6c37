"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from sessionkeeper.core.config import BaseConfig, get_config
from sessionkeeper.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
    overrides: dict | None = None,
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config class, import path or object; ``APP_ENV`` decides when omitted.
    :param overrides: Values applied last (tests pass ``REDIS_CLIENT`` here).
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)
    if overrides:
        app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from sessionkeeper.core import proxy

    proxy.init_app(app)

    from sessionkeeper.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from sessionkeeper.core import cors

    cors.init_app(app)

    from sessionkeeper.api import init_app as init_api

    init_api(app)

    from sessionkeeper.core import errors

    errors.init_app(app)

    from sessionkeeper import cli as app_cli

    app_cli.init_app(app)

    return app
