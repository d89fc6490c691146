# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Signup, login, email verification and password lifecycle.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from Settings, 12 by default)
- One-time email tokens are 32 random bytes; only their SHA-256 hash and
  an expiry are persisted. The raw value travels by email only.
- A failed email delivery rolls the freshly issued token back so no
  unusable token is left behind, then surfaces as DependencyError.
- Password reset requests answer identically whether or not the email
  belongs to an account.
"""

from __future__ import annotations

import secrets

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..config import Settings
from ..errors import AuthenticationError, ConflictError, DependencyError, ValidationError
from ..extensions import db
from ..models import ROLE_STORE_OWNER, VALID_ROLES, User
from ..validation import normalize_email, validate_new_password
from .notification_service import Notifier
from .session_service import generate_token, hash_token, revoke_all_user_sessions
from storefront.time_utils import utcnow


def hash_password(password: str, *, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _required_text(data: dict, key: str, message: str) -> str:
    value = str(data.get(key) or "").strip()
    if not value:
        raise ValidationError(message)
    return value


def email_taken(email: str, *, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.email == email)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def create_account(
    *,
    name: str,
    email: str,
    phone: str,
    password: str,
    settings: Settings,
    role: str = ROLE_STORE_OWNER,
    photo: str | None = None,
    email_verified: bool = False,
) -> User:
    """
    Insert a user row. Email uniqueness is checked up front and backed by
    the unique index, so a concurrent duplicate still ends in ConflictError.
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    email = normalize_email(email)
    if email_taken(email):
        raise ConflictError("An account with this email already exists")

    user = User(
        name=name,
        email=email,
        phone=phone,
        role=role,
        photo=photo or "default.jpg",
        password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
        email_verified=email_verified,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("An account with this email already exists")
    return user


def signup(data: dict, settings: Settings, notifier: Notifier) -> User:
    """
    Self-registration for store owners.

    The account is created first; the verification email follows. If the
    email cannot be delivered the token is rolled back and DependencyError
    is raised, but the account itself stays (the user can ask for a resend).
    """
    name = _required_text(data, "name", "Please tell us your name!")
    phone = _required_text(data, "phone", "Please provide a phone number!")
    password = validate_new_password(data.get("password"), data.get("password_confirm"))

    user = create_account(
        name=name,
        email=data.get("email"),
        phone=phone,
        password=password,
        settings=settings,
        photo=(data.get("photo") or None),
    )
    current_app.logger.info("User %s signed up", user.id)

    send_email_verification(user, settings, notifier)
    return user


# =============================================================================
# ONE-TIME EMAIL TOKENS
# =============================================================================

def _issue_verification_token(user: User, settings: Settings) -> str:
    raw = generate_token()
    user.email_verification_token_hash = hash_token(raw)
    user.email_verification_expires_at = utcnow() + settings.email_verification_ttl
    return raw


def _clear_verification_token(user: User) -> None:
    user.email_verification_token_hash = None
    user.email_verification_expires_at = None


def _issue_reset_token(user: User, settings: Settings) -> str:
    raw = generate_token()
    user.password_reset_token_hash = hash_token(raw)
    user.password_reset_expires_at = utcnow() + settings.password_reset_ttl
    return raw


def _clear_reset_token(user: User) -> None:
    user.password_reset_token_hash = None
    user.password_reset_expires_at = None


def send_email_verification(user: User, settings: Settings, notifier: Notifier) -> None:
    if user.email_verified:
        raise ValidationError("Email is already verified")

    raw = _issue_verification_token(user, settings)
    db.session.commit()

    verify_url = f"{settings.public_base_url}/api/v1/users/verify-email/{raw}"
    minutes = int(settings.email_verification_ttl.total_seconds() // 60)
    body = (
        f"Welcome! Please verify your email by visiting: {verify_url}\n"
        f"This link expires in {minutes} minutes."
    )

    try:
        notifier.send(user.email, "Verify your email", body)
    except DependencyError:
        _clear_verification_token(user)
        db.session.commit()
        current_app.logger.warning("Verification email to user %s failed; token rolled back", user.id)
        raise DependencyError("Error sending verification email. Try again later.")


def resend_verification(user: User, settings: Settings, notifier: Notifier) -> None:
    """Replace any outstanding verification token with a fresh one and email it."""
    send_email_verification(user, settings, notifier)


def verify_email(raw_token: str) -> User:
    user = None
    if raw_token:
        user = db.session.query(User).filter(
            User.email_verification_token_hash == hash_token(raw_token),
            User.email_verification_expires_at > utcnow(),
        ).first()

    if not user:
        raise ValidationError("Verification token is invalid or expired.")

    user.email_verified = True
    _clear_verification_token(user)
    db.session.commit()
    return user


def send_password_reset(
    user: User,
    settings: Settings,
    notifier: Notifier,
    *,
    subject: str = "Your password reset token",
    intro: str = "Forgot your password? Submit your new password and confirmation to:",
) -> None:
    raw = _issue_reset_token(user, settings)
    db.session.commit()

    reset_url = f"{settings.public_base_url}/api/v1/users/reset-password/{raw}"
    minutes = int(settings.password_reset_ttl.total_seconds() // 60)
    body = (
        f"{intro} {reset_url}\n"
        f"The link is valid for {minutes} minutes. If you didn't request this, ignore this email."
    )
    html = f'<p>Click <a href="{reset_url}">here</a> to reset your password.</p>'

    try:
        notifier.send(user.email, f"{subject} (valid for {minutes} min)", body, html)
    except DependencyError:
        _clear_reset_token(user)
        db.session.commit()
        current_app.logger.warning("Password reset email to user %s failed; token rolled back", user.id)
        raise


def request_password_reset(email: str | None, settings: Settings, notifier: Notifier) -> None:
    """
    Issue a reset token if the email belongs to an active account.

    Unknown emails return normally so the response cannot be used to
    discover which accounts exist. Delivery failure still surfaces.
    """
    try:
        normalized = normalize_email(email)
    except ValidationError:
        return

    user = db.session.query(User).filter_by(email=normalized, is_active=True).first()
    if not user:
        current_app.logger.info("Password reset requested for unknown email")
        return

    send_password_reset(user, settings, notifier)


def reset_password(raw_token: str, password, password_confirm, settings: Settings) -> User:
    user = None
    if raw_token:
        user = db.session.query(User).filter(
            User.password_reset_token_hash == hash_token(raw_token),
            User.password_reset_expires_at > utcnow(),
        ).first()

    if not user:
        raise ValidationError("Token is invalid or has expired")

    password = validate_new_password(password, password_confirm)
    _set_password(user, password, settings)
    _clear_reset_token(user)
    revoke_all_user_sessions(user.id, reason="Password reset", commit=False)
    db.session.commit()
    return user


# =============================================================================
# LOGIN AND PASSWORD CHANGES
# =============================================================================

def authenticate(email: str | None, password: str | None) -> User:
    """
    Authenticate user with email and password.

    Raises AuthenticationError with one message for every failure mode.
    Updates last_login_at on success.
    """
    if not email or not password:
        raise ValidationError("Please provide an email and password")

    user = db.session.query(User).filter(User.email == str(email).strip().lower()).first()

    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthenticationError("Incorrect email or password")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def _set_password(user: User, password: str, settings: Settings) -> None:
    user.password_hash = hash_password(password, rounds=settings.bcrypt_rounds)
    user.password_changed_at = utcnow()


def update_password(user: User, data: dict, settings: Settings) -> User:
    """Change password while logged in; every existing session is revoked."""
    current = data.get("password_current")
    new = data.get("password")
    confirm = data.get("password_confirm")

    if not current or not new or not confirm:
        raise ValidationError("Provide current password, new password and confirm.")

    if not verify_password(current, user.password_hash):
        raise AuthenticationError("Your current password is wrong.")

    if current == new:
        raise ValidationError("This is your current password, use a new one")

    new = validate_new_password(new, confirm)
    _set_password(user, new, settings)
    revoke_all_user_sessions(user.id, reason="Password changed", commit=False)
    db.session.commit()
    return user


def random_password() -> str:
    """Throwaway password for admin-created accounts (replaced via reset link)."""
    return secrets.token_urlsafe(24)
