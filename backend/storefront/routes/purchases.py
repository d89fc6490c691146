# Overview: Flask API routes for purchases; parses input and returns JSON responses.

# backend/storefront/routes/purchases.py
"""
Purchase routes.

POST /stores/<slug>/purchases is the customer checkout and needs no
login. Everything else requires the caller to own the purchase's store
or be an admin.

Checkout body:
    {
        "products": [{"product_id": 3, "quantity": 2, "size": "M"}, ...],
        "customer_name": "...", "customer_phone": "...", "customer_address": "...",
        "is_pod": false, "pod_image": null
    }
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, require_auth, server_error
from ..errors import StorefrontError
from ..services import purchase_service
from ..services.query_service import build_query

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/v1")


@purchases_bp.post("/stores/<slug>/purchases")
def create_purchase_route(slug: str):
    try:
        payload = request.get_json(silent=True) or {}
        items = payload.get("products", payload.get("items"))
        purchase = purchase_service.create_purchase(slug, items, payload)
        return jsonify({"purchase": purchase.to_dict()}), 201
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create purchase")


@purchases_bp.get("/stores/<slug>/purchases")
@require_auth
def list_store_purchases_route(slug: str):
    try:
        result = purchase_service.list_store_purchases(slug, g.current_user, build_query(request.args))
        return jsonify(result), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list purchases")


@purchases_bp.get("/purchases/<int:purchase_id>")
@require_auth
def get_purchase_route(purchase_id: int):
    try:
        purchase = purchase_service.get_purchase(purchase_id, g.current_user)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load purchase")


@purchases_bp.patch("/purchases/<int:purchase_id>/status")
@require_auth
def update_purchase_status_route(purchase_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        purchase = purchase_service.update_status(purchase_id, payload.get("status"), g.current_user)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update purchase status")


@purchases_bp.delete("/purchases/<int:purchase_id>")
@require_auth
def delete_purchase_route(purchase_id: int):
    try:
        purchase_service.delete_purchase(purchase_id, g.current_user)
        return "", 204
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to delete purchase")
