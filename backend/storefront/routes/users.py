# Overview: Flask API routes for accounts; parses input and returns JSON responses.

# backend/storefront/routes/users.py
"""
Account API routes

Signup, email verification, login/logout, password lifecycle and the
caller's own profile. Every successful credential change answers with a
fresh session token; the previous sessions are revoked by the service.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, require_auth, server_error
from ..errors import StorefrontError
from ..extensions import get_notifier, get_settings
from ..services import auth_service, session_service, user_service
from storefront.time_utils import to_utc_z

users_bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


def _session_payload(user, status: int = 200, **extra):
    session, token = session_service.create_session(
        user,
        get_settings(),
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    body = {
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
    }
    body.update(extra)
    return jsonify(body), status


@users_bp.post("/signup")
def signup_route():
    """
    Register a store owner and email a verification link.

    If the email cannot be sent the account still exists (409 on retry);
    the caller gets 502 and can use /resend-verification after logging in.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.signup(data, get_settings(), get_notifier())
        return _session_payload(user, 201, message="Verification email sent")
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to sign up")


@users_bp.get("/verify-email/<token>")
def verify_email_route(token: str):
    try:
        user = auth_service.verify_email(token)
        return _session_payload(user, message="Email verified")
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to verify email")


@users_bp.post("/resend-verification")
@require_auth
def resend_verification_route():
    try:
        auth_service.resend_verification(g.current_user, get_settings(), get_notifier())
        return jsonify({"message": "Verification email sent"}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to resend verification email")


@users_bp.post("/login")
def login_route():
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.authenticate(data.get("email"), data.get("password"))
        return _session_payload(user)
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to log in")


@users_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@users_bp.patch("/update-password")
@require_auth
def update_password_route():
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.update_password(g.current_user, data, get_settings())
        return _session_payload(user, message="Password updated")
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update password")


@users_bp.post("/forgot-password")
def forgot_password_route():
    """Same answer whether or not the email has an account."""
    try:
        data = request.get_json(silent=True) or {}
        auth_service.request_password_reset(data.get("email"), get_settings(), get_notifier())
        return jsonify({"message": "If that email is registered, a reset link has been sent"}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to request password reset")


@users_bp.patch("/reset-password/<token>")
def reset_password_route(token: str):
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.reset_password(
            token,
            data.get("password"),
            data.get("password_confirm"),
            get_settings(),
        )
        return _session_payload(user, message="Password reset")
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to reset password")


@users_bp.get("/me")
@require_auth
def get_me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@users_bp.patch("/me")
@require_auth
def update_me_route():
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.update_me(g.current_user, data)
        return jsonify({"user": user.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update profile")
