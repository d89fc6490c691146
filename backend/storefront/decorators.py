# Overview: Request decorators and the shared JSON error response for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import AuthenticationError, PermissionDeniedError, StorefrontError
from .extensions import db, get_settings
from .models import EVENT_ADMIN_REQUIRED, EVENT_AUTH_FAILED, EVENT_OWNERSHIP_DENIED
from .services import permission_service, session_service


def _audit(event_type: str, reason: str, user_id=None) -> None:
    permission_service.log_security_event(
        user_id=user_id,
        event_type=event_type,
        success=False,
        resource=request.path,
        action=request.method,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def error_response(exc: StorefrontError):
    """
    Roll back the request's unit of work and render ``exc`` as JSON.

    Ownership denials are also written to the security audit trail.
    """
    db.session.rollback()
    if isinstance(exc, PermissionDeniedError):
        user = getattr(g, "current_user", None)
        _audit(EVENT_OWNERSHIP_DENIED, exc.message, user_id=user.id if user else None)
    elif isinstance(exc, AuthenticationError):
        _audit(EVENT_AUTH_FAILED, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def server_error(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Something went wrong", "kind": "error"}), 500


def require_auth(f):
    """
    Require a valid bearer session token.

    Sets:
    - g.current_user: the authenticated User
    - g.session_context: the SessionContext backing this request
    - g.session_token: the raw token (used by logout)

    SECURITY: Returns 401 if the header is missing, the token is unknown,
    revoked, expired or idle too long, or the user was deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({
                "error": "You are not logged in! Please log in to get access.",
                "kind": AuthenticationError.kind,
            }), 401

        context = session_service.validate_session(token, get_settings())
        if not context:
            _audit(EVENT_AUTH_FAILED, "Invalid or expired token")
            return jsonify({"error": "Invalid or expired token", "kind": AuthenticationError.kind}), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to be an admin. Use after @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required", "kind": AuthenticationError.kind}), 401

        if not g.current_user.is_admin:
            _audit(EVENT_ADMIN_REQUIRED, "Admin role required", user_id=g.current_user.id)
            return jsonify({
                "error": "You do not have permission to perform this action",
                "kind": PermissionDeniedError.kind,
            }), 403

        return f(*args, **kwargs)

    return decorated_function
