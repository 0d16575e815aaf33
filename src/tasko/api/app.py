# src/tasko/api/app.py

from __future__ import annotations

import logging

from flask import Flask
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, NotFound

from ..core.state import AppState
from ..errors import TaskoError
from ..timeutil import now_iso
from .assistant import bp as assistant_bp
from .notifications import bp as notifications_bp
from .responses import STATE_KEY, fail, ok
from .schedules import bp as schedules_bp
from .tasks import bp as tasks_bp

logger = logging.getLogger(__name__)


def create_app(state: AppState) -> Flask:
    """Build the Flask app around an already wired AppState."""
    app = Flask("tasko")
    app.json.sort_keys = False
    app.extensions[STATE_KEY] = state

    debug = bool(getattr(state.settings, "debug", False))
    frontend_url = getattr(state.settings, "frontend_url", "http://localhost:3000")
    CORS(app, resources={r"/api/*": {"origins": frontend_url}})

    @app.get("/api/health")
    def health():
        return ok(
            {
                "status": "OK",
                "message": f"{getattr(state.settings, 'app_name', 'tasko')} API is running",
                "timestamp": now_iso(),
            }
        )

    app.register_blueprint(tasks_bp, url_prefix="/api/tasks")
    app.register_blueprint(notifications_bp, url_prefix="/api/notifications")
    app.register_blueprint(schedules_bp, url_prefix="/api/schedules")
    app.register_blueprint(assistant_bp, url_prefix="/api/ai")

    @app.errorhandler(TaskoError)
    def handle_tasko_error(e: TaskoError):
        if e.status_code >= 500:
            logger.error("Request failed: %s", e.message)
        return fail(e.message, e.status_code)

    @app.errorhandler(NotFound)
    def handle_not_found(_e: NotFound):
        return fail("Route not found", 404)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return fail(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("Unhandled error in request")
        return fail("Internal server error", 500, message=str(e) if debug else None)

    return app
