# Overview: Flask extension instances plus accessors for per-app runtime objects.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

EXTENSION_KEY = "storefront"


def get_settings():
    """Settings built by create_app(). Route boundary only; services take it as an argument."""
    return current_app.extensions[EXTENSION_KEY]["settings"]


def get_notifier():
    return current_app.extensions[EXTENSION_KEY]["notifier"]
