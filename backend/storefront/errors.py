# Overview: Error kinds raised by services and translated to JSON by routes.

"""
Storefront error hierarchy.

Every service failure is one of six kinds. Routes never inspect messages;
they map the class to an HTTP status via ``status_code`` and return
``error.to_dict()``.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for all expected, caller-visible failures."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(StorefrontError):
    """Resource, or a parent in its ownership chain, does not exist."""

    kind = "not_found"
    status_code = 404


class ValidationError(StorefrontError, ValueError):
    """400-level input problem."""

    kind = "invalid_input"
    status_code = 400


class AuthenticationError(StorefrontError):
    """Missing, invalid or expired credential."""

    kind = "unauthorized"
    status_code = 401


class PermissionDeniedError(StorefrontError):
    """Authenticated, but the actor does not control the resource."""

    kind = "forbidden"
    status_code = 403


class ConflictError(StorefrontError, ValueError):
    """409-level uniqueness conflict (duplicate store owner, store name, email)."""

    kind = "conflict"
    status_code = 409


class DependencyError(StorefrontError):
    """A downstream collaborator (email, image storage) failed."""

    kind = "dependency"
    status_code = 502
