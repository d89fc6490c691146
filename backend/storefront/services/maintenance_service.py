# Overview: Housekeeping for rows that only matter for a limited time.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent, SessionToken, User
from storefront.time_utils import utcnow


def cleanup_sessions(*, older_than_days: int = 30) -> int:
    """Delete sessions that are revoked or expired and were opened before the window."""
    now = utcnow()
    deleted = (
        db.session.query(SessionToken)
        .filter(
            SessionToken.created_at < now - timedelta(days=older_than_days),
            db.or_(SessionToken.is_revoked.is_(True), SessionToken.expires_at < now),
        )
        .delete(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("Removed %s stale sessions", deleted)
    return deleted


def clear_expired_email_tokens() -> int:
    """
    Null out verification and reset token digests that can no longer be
    redeemed. Returns the number of users touched.
    """
    now = utcnow()
    users = (
        db.session.query(User)
        .filter(
            db.or_(
                User.email_verification_expires_at < now,
                User.password_reset_expires_at < now,
            )
        )
        .all()
    )
    for user in users:
        if user.email_verification_expires_at and user.email_verification_expires_at < now:
            user.email_verification_token_hash = None
            user.email_verification_expires_at = None
        if user.password_reset_expires_at and user.password_reset_expires_at < now:
            user.password_reset_token_hash = None
            user.password_reset_expires_at = None
    db.session.commit()
    return len(users)


def cleanup_security_events(*, retention_days: int = 90) -> int:
    deleted = (
        db.session.query(SecurityEvent)
        .filter(SecurityEvent.occurred_at < utcnow() - timedelta(days=retention_days))
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
