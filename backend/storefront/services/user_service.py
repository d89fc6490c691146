# Overview: Profile and admin-side user management.

"""
User Management Service

Self-service profile edits (name, email, phone) and admin operations.
Users are never hard-deleted: deactivation is a soft state that also
revokes every open session.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..config import Settings
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ROLE_STORE_OWNER, VALID_ROLES, User
from ..validation import normalize_email
from . import auth_service
from .notification_service import Notifier
from .query_service import ListQuery, apply_list_query, listing_response, paginate
from .session_service import revoke_all_user_sessions

SELF_EDITABLE_FIELDS = ("name", "email", "phone")
ADMIN_EDITABLE_FIELDS = ("name", "email", "phone", "photo", "role")
PASSWORD_FIELDS = ("password", "password_confirm", "password_current")

USER_FILTERABLE = ("id", "name", "email", "role", "is_active", "email_verified", "created_at")
USER_SORTABLE = USER_FILTERABLE + ("last_login_at",)


def _clean_patch(data: dict, allowed: tuple[str, ...]) -> dict:
    patch = {}
    for key in allowed:
        if key not in data:
            continue
        value = data[key]
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        patch[key] = str(value).strip()
    return patch


def _apply_user_patch(user: User, patch: dict) -> None:
    if "email" in patch:
        patch["email"] = normalize_email(patch["email"])
        if patch["email"] != user.email and auth_service.email_taken(patch["email"], exclude_user_id=user.id):
            raise ConflictError("An account with this email already exists")

    if "role" in patch and patch["role"] not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    for key, value in patch.items():
        setattr(user, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("An account with this email already exists")


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def update_me(user: User, data: dict) -> User:
    """Profile update. Password changes go through update-password instead."""
    data = data or {}
    if any(key in data for key in PASSWORD_FIELDS):
        raise ValidationError("This route is not for password updates. Please use /update-password.")

    patch = _clean_patch(data, SELF_EDITABLE_FIELDS)
    if not patch:
        raise ValidationError("Nothing to update. Allowed fields: name, email, phone")

    _apply_user_patch(user, patch)
    return user


def list_users(list_query: ListQuery) -> dict:
    query = apply_list_query(
        db.session.query(User),
        User,
        list_query,
        filterable=USER_FILTERABLE,
        sortable=USER_SORTABLE,
    )
    rows, total = paginate(query, list_query)
    return listing_response(rows, total, list_query, User.to_dict)


def create_user(data: dict, settings: Settings, notifier: Notifier) -> User:
    """
    Admin-created account with a random password.

    The new user receives a reset link to choose their own password.
    """
    data = data or {}
    name = str(data.get("name") or "").strip()
    phone = str(data.get("phone") or "").strip()
    if not name or not phone:
        raise ValidationError("name, email and phone are required")

    user = auth_service.create_account(
        name=name,
        email=data.get("email"),
        phone=phone,
        password=auth_service.random_password(),
        settings=settings,
        role=data.get("role") or ROLE_STORE_OWNER,
        email_verified=True,
    )
    current_app.logger.info("Admin created user %s", user.id)

    auth_service.send_password_reset(
        user,
        settings,
        notifier,
        subject="Your account has been created",
        intro="An account was created for you. Choose your password at:",
    )
    return user


def update_user(user_id: int, data: dict) -> User:
    user = get_user(user_id)
    patch = _clean_patch(data or {}, ADMIN_EDITABLE_FIELDS)
    if not patch:
        raise ValidationError("Nothing to update. Allowed fields: " + ", ".join(ADMIN_EDITABLE_FIELDS))

    _apply_user_patch(user, patch)
    return user


def set_user_active(user_id: int, active: bool, *, acting_user_id: int | None = None) -> User:
    """Soft (de)activation. Deactivating revokes all sessions."""
    user = get_user(user_id)
    if not active and acting_user_id is not None and acting_user_id == user.id:
        raise ValidationError("You cannot deactivate your own account")

    user.is_active = active
    if not active:
        revoke_all_user_sessions(user.id, reason="User account deactivated", commit=False)
    db.session.commit()

    current_app.logger.info("User %s %s", user.id, "activated" if active else "deactivated")
    return user


def force_password_reset(user_id: int, settings: Settings, notifier: Notifier) -> User:
    """Revoke sessions and email a reset link; the old password keeps working until reset."""
    user = get_user(user_id)
    if not user.is_active:
        raise ValidationError("User account is deactivated")

    revoke_all_user_sessions(user.id, reason="Password reset forced by admin")
    auth_service.send_password_reset(
        user,
        settings,
        notifier,
        subject="An administrator requested a password reset",
        intro="Please choose a new password at:",
    )
    return user
