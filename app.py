"""
Study Coach — Flask Web Application

Backend for the student/parent study coach: persisted schedule state,
lock-in and score heuristics, and a Gemini-backed chat proxy.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from auth import auth_bp, login_manager
from blueprints import register_blueprints
from chat_client import ChatProxyClient
from config import cors_origins
from extensions import cors, limiter
from persistence import slot_from_config
from state_store import StateStore


def create_app(
    test_config: dict[str, Any] | None = None,
    store: StateStore | None = None,
) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    if test_config is not None:
        app.config.from_object(config_by_name["testing"])
        app.config.update(test_config)
    else:
        env = os.environ.get("FLASK_ENV", "development")
        cfg = config_by_name.get(env, config_by_name["development"])
        app.config.from_object(cfg)
        if hasattr(cfg, "validate"):
            cfg.validate()

    app.secret_key = app.config["SECRET_KEY"]

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Persisted state: one store for the process, injected via app.extensions
    app.extensions["state_store"] = store if store is not None else StateStore(slot_from_config(app.config))

    app.extensions["chat_client"] = ChatProxyClient(
        api_key=app.config.get("GEMINI_API_KEY", ""),
        model=app.config.get("GEMINI_MODEL", ""),
        history_limit=app.config.get("CHAT_HISTORY_LIMIT", 20),
    )
    if not app.config.get("GEMINI_API_KEY"):
        app.logger.warning("GEMINI_API_KEY is missing; chat requests will fail with 503.")

    origins = cors_origins(app.config.get("CORS_ORIGINS", "*"))
    cors.init_app(app, resources={
        r"/api/*": {"origins": origins},
        r"/health*": {"origins": "*"},
    }, supports_credentials=origins != "*")

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    app.register_blueprint(auth_bp)
    login_manager.init_app(app)

    register_blueprints(app)

    # JSON errors for the API
    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code

    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    return app


if __name__ == "__main__":
    application = create_app()
    application.run(debug=application.config.get("DEBUG", False), port=application.config["PORT"])
