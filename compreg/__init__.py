import logging
import os
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from flask_cors import CORS

from compreg.config import config
from compreg.extensions import db, ma, jwt, migrate
from compreg.registration.transaction import enable_sqlite_immediate_transactions

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(app):
    """Apply LOG_LEVEL to the package loggers and attach LOG_FILE if set."""
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    package_logger = logging.getLogger("compreg")
    package_logger.setLevel(level)

    if not package_logger.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(stream)

    log_file = app.config.get("LOG_FILE")
    if log_file and not any(isinstance(h, RotatingFileHandler) for h in package_logger.handlers):
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(file_handler)


def create_app(config_name=None, overrides=None):
    app = Flask(__name__)

    # Settings
    config_name = config_name or os.getenv("COMPREG_CONFIG", "default")
    app.config.from_object(config[config_name])
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    # Extensions
    db.init_app(app)
    ma.init_app(app)
    jwt.init_app(app)
    migrate.init_app(app, db)
    CORS(app, resources={r"/*": {
        "origins": app.config.get("CORS_ORIGINS", ["http://127.0.0.1:5000", "http://localhost:3000"]),
        "allow_headers": ["Content-Type", "Authorization"],
        "methods": ["GET", "POST", "DELETE", "OPTIONS"]
    }})

    with app.app_context():
        enable_sqlite_immediate_transactions(db.engine)

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"success": False, "error": "Token has expired"}), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({"success": False, "error": "Invalid token"}), 401

    @jwt.unauthorized_loader
    def unauthorized_callback(error):
        return jsonify({"success": False, "error": "Authentication required"}), 401

    from compreg import models  # noqa: F401

    # Blueprints
    from compreg.routes.events import events_bp
    from compreg.routes.admin import admin_bp

    app.register_blueprint(events_bp)
    app.register_blueprint(admin_bp)

    # CLI and scheduled jobs
    from compreg.cli import register_commands
    from compreg.jobs import configure_scheduler

    register_commands(app)
    configure_scheduler(app)

    return app
