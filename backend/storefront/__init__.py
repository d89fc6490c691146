# backend/storefront/__init__.py
from flask import Flask

from .config import Config, Settings
from .extensions import EXTENSION_KEY, db, migrate


def create_app(overrides: dict | None = None, *, notifier=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.notification_service import build_notifier

    settings = Settings.from_mapping(app.config)
    app.extensions[EXTENSION_KEY] = {
        "settings": settings,
        "notifier": notifier or build_notifier(settings),
    }

    # Register blueprints
    from .routes.system import system_bp
    from .routes.users import users_bp
    from .routes.stores import stores_bp
    from .routes.products import products_bp
    from .routes.purchases import purchases_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(admin_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
