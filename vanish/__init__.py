from __future__ import annotations

import os
from typing import Any, Mapping

from flask import Flask
from flask_cors import CORS

from .config import get_config
from .observability import init_observability
from .store import init_store
from .api.pastes import api_bp
from .cli import register_cli
from .worker.expiry_worker import start_expiry_worker

def create_app(
    env_name: str | None = None,
    config_overrides: Mapping[str, Any] | None = None,
) -> Flask:
    """
    Application factory for the Flask backend.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``). ``config_overrides`` are applied last.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)
    if config_overrides:
        app.config.update(config_overrides)

    CORS(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
    )

    # Initialize infrastructure layers
    init_observability(app)
    store = init_store(app)

    # Register API blueprints and operator commands
    app.register_blueprint(api_bp, url_prefix="/api")
    register_cli(app)

    # Start background expiry sweep (disabled in testing)
    if app.config.get("EXPIRY_SWEEP_ENABLED", False) and not app.config.get("TESTING", False):
        start_expiry_worker(app, store)

    return app
