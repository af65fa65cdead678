"""Application factory wiring Flask extensions, the store and blueprints."""

from __future__ import annotations

from flask import Flask

from subtrack.core.config import BaseConfig, get_config
from subtrack.core.logger import configure_logging, init_app as init_logging


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    :param config: Config class, import string or object; ``APP_ENV`` decides
        when omitted.
    :param instance_relative_config: Load overrides from the instance folder.
    :param instance_config_filename: Override file inside the instance folder.
    :raises RuntimeError: When the selected config fails ``validate()``.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    config_obj = get_config() if config is None else config
    app.config.from_object(config_obj)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)
    validate = getattr(config_obj, "validate", None)
    if callable(validate):
        validate()

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from subtrack.core import proxy

    proxy.init_app(app)

    from subtrack.core import extensions

    extensions.init_app(app)

    from subtrack.core import database

    database.init_app(app)

    init_logging(app)

    from subtrack.core import cors

    cors.init_app(app)

    from subtrack.api import init_app as init_api

    init_api(app)

    from subtrack.core import errors

    errors.init_app(app)

    from subtrack import cli as app_cli

    app_cli.init_app(app)

    return app
