# Overview: Bearer session tokens: issue, validate, revoke.

"""
Session Service

A client holds the raw 64-hex-char token; the database holds only its
SHA-256 digest. A session stops working when it is revoked, passes its
absolute expiry, sits unused longer than the idle timeout, or belongs to a
deactivated user. The last two cases also revoke the row so the reason is
kept.

generate_token()/hash_token() are shared with the one-time email tokens in
auth_service.
"""

import hashlib
import secrets
from dataclasses import dataclass

from ..config import Settings
from ..extensions import db
from ..models import SessionToken, User
from storefront.time_utils import utcnow


@dataclass
class SessionContext:
    """The authenticated user and the session row behind a request."""
    user: User
    session: SessionToken


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_open_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _revoke(session: SessionToken, now, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = now
    session.revoked_reason = reason


def create_session(
    user: User,
    settings: Settings,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Persist a new session for ``user``; returns (row, raw token)."""
    raw = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(raw),
        created_at=now,
        last_used_at=now,
        expires_at=now + settings.session_absolute_timeout,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, raw


def validate_session(token: str, settings: Settings) -> SessionContext | None:
    """
    Resolve a raw bearer token to its SessionContext, or None.

    A successful lookup slides last_used_at forward.
    """
    if not token:
        return None

    session = _find_open_session(token)
    if session is None:
        return None

    now = utcnow()
    if now > session.expires_at:
        return None

    reason = None
    if now - session.last_used_at > settings.session_idle_timeout:
        reason = "Idle timeout"
    elif session.user is None or not session.user.is_active:
        reason = "User account deactivated"

    if reason:
        _revoke(session, now, reason)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one session; False when the token is unknown or already revoked."""
    session = _find_open_session(token)
    if session is None:
        return False

    _revoke(session, utcnow(), reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", *, commit: bool = True) -> int:
    """
    Revoke every open session of ``user_id``.

    Pass commit=False to make the revocation part of the caller's
    transaction (password change, reset, deactivation).
    """
    now = utcnow()
    sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for session in sessions:
        _revoke(session, now, reason)

    if commit:
        db.session.commit()
    return len(sessions)
