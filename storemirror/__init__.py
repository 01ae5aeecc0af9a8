import logging
import sys
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .config import ConfigurationError, Settings
from .services.container import EXTENSION_KEY, Services, build_services
from .utils.logger import error, set_level


def _configure_logging(app: Flask, level: str):
    # =========================================================
    # Route app + engine logs to gunicorn's handlers and stdout
    # =========================================================
    set_level(level)
    gunicorn_error = logging.getLogger("gunicorn.error")
    handlers = list(gunicorn_error.handlers)

    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(logging.Formatter("[%(asctime)s][%(levelname)s] %(message)s", "%H:%M:%S"))
    handlers.append(sh)

    engine_logger = logging.getLogger("storemirror")
    engine_logger.handlers = handlers
    engine_logger.setLevel(logging.DEBUG)
    engine_logger.propagate = False

    app.logger.handlers = handlers
    app.logger.setLevel(logging.INFO)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None):
    load_dotenv()
    settings = settings or (services.settings if services else Settings.from_env())

    app = Flask(__name__)
    _configure_logging(app, settings.log_level)
    # the webhook pool starts on the first delivery
    app.extensions[EXTENSION_KEY] = services or build_services(settings)

    # =========================================================
    # Blueprints
    # =========================================================
    from .routes.admin import bp as admin_bp
    from .routes.register import bp as register_bp
    from .routes.setup_metafields import bp as setup_bp
    from .routes.webhooks_destination import bp as destination_bp
    from .routes.webhooks_source import bp as source_bp

    app.register_blueprint(source_bp, url_prefix="/source/webhooks")
    app.register_blueprint(destination_bp, url_prefix="/destination/webhooks")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(register_bp, url_prefix="/register_webhooks")
    app.register_blueprint(setup_bp, url_prefix="/setup/metafields")

    @app.errorhandler(ConfigurationError)
    def config_error(e):
        error("[config] request failed on missing settings", err=e)
        return {"status": "config-error", "error": str(e)}, 500

    # =========================================================
    # CLI
    # =========================================================
    from .cli import reconcile_command
    app.cli.add_command(reconcile_command)

    # =========================================================
    # Health check
    # =========================================================
    @app.get("/health")
    def health():
        return {"ok": True}, 200

    return app
