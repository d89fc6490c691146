# Overview: Outbound email collaborator (verification, password reset, invites).

from __future__ import annotations

from typing import Protocol

import resend
from flask import current_app

from ..config import Settings
from ..errors import DependencyError


class Notifier(Protocol):
    def send(self, to: str, subject: str, body: str, html: str | None = None) -> None:
        """Deliver one message or raise DependencyError."""


class LoggingNotifier:
    """Development backend: writes the message to the application log."""

    def send(self, to: str, subject: str, body: str, html: str | None = None) -> None:
        current_app.logger.info("Email to %s | %s\n%s", to, subject, body)


class ResendNotifier:
    """Delivers through the Resend HTTP API."""

    def __init__(self, api_key: str, sender: str):
        self.api_key = (api_key or "").strip()
        self.sender = sender

    def send(self, to: str, subject: str, body: str, html: str | None = None) -> None:
        if not self.api_key:
            raise DependencyError("Email delivery is not configured")

        payload: dict[str, object] = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": body,
        }
        if html:
            payload["html"] = html

        previous_api_key = getattr(resend, "api_key", None)
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(payload)
        except Exception as exc:
            current_app.logger.warning("Resend delivery to %s failed: %s", to, exc)
            raise DependencyError("There was an error sending the email. Try again later.") from exc
        finally:
            resend.api_key = previous_api_key

        if not isinstance(response, dict) or not response.get("id"):
            current_app.logger.warning("Resend returned unexpected response: %r", response)
            raise DependencyError("There was an error sending the email. Try again later.")


def build_notifier(settings: Settings) -> Notifier:
    if settings.notification_backend == "resend":
        return ResendNotifier(settings.resend_api_key, settings.email_from)
    if settings.notification_backend == "log":
        return LoggingNotifier()
    raise ValueError(f"Unknown NOTIFICATION_BACKEND: {settings.notification_backend}")
