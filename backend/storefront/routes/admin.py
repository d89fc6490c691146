# Overview: Flask API routes for administrators; parses input and returns JSON responses.

# backend/storefront/routes/admin.py
"""
Admin routes: platform statistics and user management.

SECURITY: every route requires an authenticated admin. Users are never
deleted here; deactivate them instead.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, require_admin, require_auth, server_error
from ..errors import StorefrontError
from ..extensions import get_notifier, get_settings
from ..services import reporting_service, user_service
from ..services.query_service import build_query

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.get("/statistics")
@require_auth
@require_admin
def statistics_route():
    try:
        return jsonify(reporting_service.get_statistics()), 200
    except Exception:
        return server_error("Failed to build statistics")


@admin_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    try:
        return jsonify(user_service.list_users(build_query(request.args))), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list users")


@admin_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.create_user(data, get_settings(), get_notifier())
        return jsonify({"user": user.to_dict()}), 201
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create user")


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    try:
        return jsonify({"user": user_service.get_user(user_id).to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    try:
        data = request.get_json(silent=True) or {}
        user = user_service.update_user(user_id, data)
        return jsonify({"user": user.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update user")


@admin_bp.post("/users/<int:user_id>/activate")
@require_auth
@require_admin
def activate_user_route(user_id: int):
    try:
        user = user_service.set_user_active(user_id, True, acting_user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_admin
def deactivate_user_route(user_id: int):
    try:
        user = user_service.set_user_active(user_id, False, acting_user_id=g.current_user.id)
        return jsonify({"user": user.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)


@admin_bp.post("/users/<int:user_id>/force-password-reset")
@require_auth
@require_admin
def force_password_reset_route(user_id: int):
    try:
        user_service.force_password_reset(user_id, get_settings(), get_notifier())
        return jsonify({"message": "Password reset email sent"}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to force password reset")
