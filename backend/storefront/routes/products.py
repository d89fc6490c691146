# Overview: Flask API routes for products; parses input and returns JSON responses.

# backend/storefront/routes/products.py
"""
Product routes.

Listing and reading are public. Writes require the caller to control the
product's store (or be an admin); creation also requires a verified email.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, require_auth, server_error
from ..errors import StorefrontError, ValidationError
from ..extensions import get_settings
from ..models import MAX_PRODUCT_IMAGES
from ..services import image_service, products_service
from ..services.permission_service import require_owner
from ..services.query_service import build_query

products_bp = Blueprint("products", __name__, url_prefix="/api/v1")


@products_bp.post("/stores/<int:store_id>/products")
@require_auth
def create_product_route(store_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        product = products_service.create_product(store_id, g.current_user, payload)
        return jsonify({"product": product.to_dict()}), 201
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create product")


@products_bp.get("/stores/<int:store_id>/products")
def list_products_route(store_id: int):
    """
    Query params: field filters (``price_cents[gte]=1000``), ``sort``,
    ``fields``, ``page`` and ``limit``.
    """
    try:
        result = products_service.list_products(store_id, build_query(request.args))
        return jsonify(result), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list products")


@products_bp.get("/products/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load product")


@products_bp.patch("/products/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        payload = request.get_json(silent=True) or {}
        product = products_service.update_product(product_id, g.current_user, payload)
        return jsonify({"product": product.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update product")


@products_bp.delete("/products/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id, g.current_user)
        return "", 204
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to delete product")


@products_bp.post("/products/<int:product_id>/images")
@require_auth
def upload_product_images_route(product_id: int):
    """Replace the product's images with up to two uploads (multipart field "images")."""
    settings = get_settings()
    saved = []
    try:
        product = products_service.get_product(product_id)
        require_owner(g.current_user, product, label="Product", action="update")

        files = [f for f in request.files.getlist("images") if f and f.filename]
        if not files:
            raise ValidationError("Upload at least one image")
        if len(files) > MAX_PRODUCT_IMAGES:
            raise ValidationError(f"A product can have at most {MAX_PRODUCT_IMAGES} images")

        saved = image_service.save_images(files, "product", product.id, settings)
        previous = list(product.images or [])
        product = products_service.update_product(product_id, g.current_user, {"images": saved})

        for filename in previous:
            image_service.remove_image(filename, "product", settings)
        return jsonify({"product": product.to_dict()}), 200
    except StorefrontError as e:
        for filename in saved:
            image_service.remove_image(filename, "product", settings)
        return error_response(e)
    except Exception:
        return server_error("Failed to upload product images")
