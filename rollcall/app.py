# app.py
import logging

import click
from flask import Flask, jsonify, redirect, url_for

from rollcall.config import Config
from rollcall.errors import InvalidOutcome, ScheduleConflict, SessionNotFound, StorageError
from rollcall.logging_config import configure_logging
from rollcall.models import db
from rollcall.services import AttendanceEngine

logger = logging.getLogger(__name__)

EXTENSION_KEY = "rollcall"


def create_app(config_object=Config, roster=None, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"), app.config.get("LOG_FILE"))

    db.init_app(app)
    with app.app_context():
        # Safe to run repeatedly; only missing tables are created
        db.create_all()

    app.extensions[EXTENSION_KEY] = AttendanceEngine.from_config(app.config, roster=roster)

    from rollcall.routes.faculty_routes import faculty_bp
    from rollcall.routes.student_routes import student_bp

    app.register_blueprint(faculty_bp, url_prefix="/faculty")
    app.register_blueprint(student_bp, url_prefix="/student")

    _register_error_handlers(app)
    _register_commands(app)

    @app.route("/")
    def root():
        return redirect(url_for("student.my_attendance"))

    logger.info("Attendance engine ready (rotation=%s)", app.config.get("TOKEN_ROTATION_ENABLED"))
    return app


def _register_error_handlers(app):
    @app.errorhandler(SessionNotFound)
    def session_not_found(exc):
        return jsonify({"success": False, "msg": "Session not found"}), 404

    @app.errorhandler(ScheduleConflict)
    def schedule_conflict(exc):
        return jsonify({
            "success": False,
            "msg": "A live session already exists for this slot",
            "session_id": exc.existing_session_id,
        }), 409

    @app.errorhandler(InvalidOutcome)
    def invalid_outcome(exc):
        return jsonify({"success": False, "msg": str(exc)}), 400

    @app.errorhandler(400)
    def bad_request(exc):
        return jsonify({"success": False, "msg": exc.description}), 400

    @app.errorhandler(StorageError)
    def storage_error(exc):
        logger.error("Request aborted: %s", exc)
        return jsonify({"success": False, "msg": "Attendance store unavailable, retry"}), 503


def _register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create missing tables."""
        db.create_all()
        click.echo("Database ready")


if __name__ == "__main__":
    create_app().run(debug=True)
