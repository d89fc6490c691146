# backend/storefront/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///storefront.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sessions
    SESSION_ABSOLUTE_TIMEOUT_HOURS = _env_int("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24)
    SESSION_IDLE_TIMEOUT_HOURS = _env_int("SESSION_IDLE_TIMEOUT_HOURS", 2)

    # bcrypt cost factor
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # One-time tokens delivered by email
    PASSWORD_RESET_TOKEN_MINUTES = _env_int("PASSWORD_RESET_TOKEN_MINUTES", 10)
    EMAIL_VERIFICATION_TOKEN_MINUTES = _env_int("EMAIL_VERIFICATION_TOKEN_MINUTES", 60)

    # Notifications: "log" writes to the app logger, "resend" delivers for real
    NOTIFICATION_BACKEND = os.environ.get("NOTIFICATION_BACKEND", "log")
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY", "")
    EMAIL_FROM = os.environ.get("EMAIL_FROM", "Storefront <no-reply@storefront.local>")
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000")

    # Uploaded images
    UPLOAD_ROOT = os.environ.get("UPLOAD_ROOT", "public/img")
    MAX_IMAGE_BYTES = _env_int("MAX_IMAGE_BYTES", 5 * 1024 * 1024)
    MAX_CONTENT_LENGTH = 12 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """
    Immutable runtime settings built once by create_app().

    Services receive this object explicitly instead of reading the
    environment or Flask config on their own.
    """
    session_absolute_timeout: timedelta
    session_idle_timeout: timedelta
    password_reset_ttl: timedelta
    email_verification_ttl: timedelta
    notification_backend: str
    resend_api_key: str
    email_from: str
    public_base_url: str
    upload_root: str
    max_image_bytes: int
    bcrypt_rounds: int = 12

    @classmethod
    def from_mapping(cls, config) -> "Settings":
        return cls(
            session_absolute_timeout=timedelta(hours=int(config["SESSION_ABSOLUTE_TIMEOUT_HOURS"])),
            session_idle_timeout=timedelta(hours=int(config["SESSION_IDLE_TIMEOUT_HOURS"])),
            password_reset_ttl=timedelta(minutes=int(config["PASSWORD_RESET_TOKEN_MINUTES"])),
            email_verification_ttl=timedelta(minutes=int(config["EMAIL_VERIFICATION_TOKEN_MINUTES"])),
            notification_backend=str(config["NOTIFICATION_BACKEND"]).lower(),
            resend_api_key=str(config.get("RESEND_API_KEY") or ""),
            email_from=str(config["EMAIL_FROM"]),
            public_base_url=str(config["PUBLIC_BASE_URL"]).rstrip("/"),
            upload_root=str(config["UPLOAD_ROOT"]),
            max_image_bytes=int(config["MAX_IMAGE_BYTES"]),
            bcrypt_rounds=int(config.get("BCRYPT_ROUNDS", 12)),
        )
