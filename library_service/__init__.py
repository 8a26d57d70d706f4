import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from library_service.config import Config
from library_service.extensions import db, migrate, jwt
from library_service.utils.errors import ServiceError
from library_service.utils.jwt_callbacks import register_jwt_callbacks


def _register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def _service_error(e):
        # nothing half-applied survives a rejected request
        db.session.rollback()
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def _http_error(e):
        message = "Route not found" if e.code == 404 else e.description
        return jsonify({"error": message}), e.code

    @app.errorhandler(Exception)
    def _unhandled(e):
        db.session.rollback()
        app.logger.exception(f"[app] unhandled error: {e}")
        return jsonify({"error": "Something went wrong"}), 500


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # 1) db first; models must be imported before create_all / migrations see them
    db.init_app(app)
    from library_service.models import book, borrow, reservation, user  # noqa: F401

    # 2) other extensions
    migrate.init_app(app, db)
    jwt.init_app(app)
    register_jwt_callbacks(jwt)

    # 3) API blueprints
    from library_service.controllers.auth_controller import auth_bp
    from library_service.controllers.book_controller import book_bp
    from library_service.controllers.borrow_controller import borrow_bp
    from library_service.controllers.reservation_controller import reservation_bp
    from library_service.controllers.user_controller import user_bp
    from library_service.controllers.analytics_controller import analytics_bp
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(book_bp, url_prefix="/api/books")
    app.register_blueprint(borrow_bp, url_prefix="/api/borrows")
    app.register_blueprint(reservation_bp, url_prefix="/api/reservations")
    app.register_blueprint(user_bp, url_prefix="/api/users")
    app.register_blueprint(analytics_bp, url_prefix="/api/analytics")

    _register_error_handlers(app)

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok", "message": "Library Management System API is running"})

    # externally triggered jobs (no in-process scheduler)
    from library_service.tasks.reservation_sweep import expire_reservations_command
    from library_service.tasks.bootstrap import create_admin_command, init_db_command, seed_command
    app.cli.add_command(expire_reservations_command)
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_admin_command)
    app.cli.add_command(seed_command)

    return app
