"""
app.py — Flask application factory for the practice-management API.
"""

import os
import logging
from datetime import datetime, timezone
from flask import Flask, jsonify, request, g
from config import get_config
from database import db
from utils.errors import AllocationError
from utils.response import allocation_error


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or get_config())

    _configure_logging(app)
    _init_extensions(app)
    _register_blueprints(app)
    _register_error_handlers(app)
    _register_hooks(app)
    _register_health_check(app)

    return app


# ─── Logging ──────────────────────────────────────────────────────────────────

def _configure_logging(app):
    level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    app.logger.setLevel(level)


# ─── Extensions ───────────────────────────────────────────────────────────────

def _init_extensions(app):
    import models  # noqa: F401
    db.init_app(app)


# ─── Blueprints ───────────────────────────────────────────────────────────────

def _register_blueprints(app):
    from routes.portfolios import portfolios_bp
    from routes.references import references_bp
    from routes.clients    import clients_bp

    app.register_blueprint(portfolios_bp, url_prefix="/api/portfolios")
    app.register_blueprint(references_bp, url_prefix="/api/references")
    app.register_blueprint(clients_bp,    url_prefix="/api/clients")


# ─── Error handlers ───────────────────────────────────────────────────────────

def _register_error_handlers(app):

    @app.errorhandler(AllocationError)
    def allocation_failed(e):
        if e.http_status >= 500:
            app.logger.warning(f"Reference allocation failed: {e}")
        return allocation_error(e)

    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({"success": False, "error": "Bad request.", "details": str(e)}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": f"Route not found: {request.path}"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"success": False, "error": "Method not allowed."}), 405

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Unhandled server error")
        return jsonify({"success": False, "error": "Internal server error."}), 500


# ─── Request / response hooks ─────────────────────────────────────────────────

def _register_hooks(app):

    @app.before_request
    def log_request():
        g.request_start = datetime.now(timezone.utc)
        app.logger.debug(f"--> {request.method} {request.path}")

    @app.after_request
    def add_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"

        if hasattr(g, "request_start"):
            elapsed = (datetime.now(timezone.utc) - g.request_start).total_seconds() * 1000
            app.logger.debug(f"<-- {response.status_code}  ({elapsed:.1f}ms)")

        return response

    @app.teardown_appcontext
    def rollback_on_error(exc):
        if exc is not None:
            db.session.rollback()


# ─── Health check ─────────────────────────────────────────────────────────────

def _register_health_check(app):

    @app.route("/health")
    def health():
        """
        GET /health
        Returns platform status. Checks DB connectivity.
        """
        try:
            db.session.execute(db.text("SELECT 1"))
            db_status = "ok"
        except Exception as e:
            db_status = f"error: {e}"

        return jsonify({
            "status": "ok" if db_status == "ok" else "degraded",
            "database": db_status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "0.1.0",
        }), 200 if db_status == "ok" else 503


# ─── Entry point ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app = create_app()
    app.run(debug=app.config.get("DEBUG", False), port=int(os.environ.get("PORT", 5000)), host="0.0.0.0")
