import logging
import os

from flask import Flask

from config import Config
from .cli import register_commands
from .errors import register_error_handlers
from .extensions import cors, db, login_manager, migrate
from .routes.auth import bp as auth_bp
from .routes.clients import bp as clients_bp
from .routes.customers import bp as customers_bp
from .routes.email import bp as email_bp
from .routes.main import bp as main_bp


def create_app(config_class=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    os.makedirs(app.config["ATTACHMENTS_FOLDER"], exist_ok=True)
    app.config["APP_VERSION"] = _load_app_version(app.root_path)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
        supports_credentials=True,
    )

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(email_bp)

    register_error_handlers(app)
    register_commands(app)

    return app


def _load_app_version(root_path):
    version_path = os.path.join(root_path, "VERSION")
    try:
        with open(version_path, "r", encoding="utf-8") as handle:
            return handle.read().strip() or "0.0.0"
    except FileNotFoundError:
        return "0.0.0"
