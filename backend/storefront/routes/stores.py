# Overview: Flask API routes for stores and banners; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, require_admin, require_auth, server_error
from ..errors import StorefrontError, ValidationError
from ..extensions import get_settings
from ..services import image_service, store_service
from ..services.permission_service import require_owner
from ..services.query_service import build_query
from storefront.time_utils import utcnow

stores_bp = Blueprint("stores", __name__, url_prefix="/api/v1/stores")

# Store column that receives the filename for each upload category
IMAGE_FIELDS = {"logo": "logo", "hero": "hero_image"}


@stores_bp.post("")
@require_auth
def create_store_route():
    try:
        data = request.get_json(silent=True) or {}
        store = store_service.create_store(g.current_user, data)
        return jsonify({"store": store.to_dict()}), 201
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to create store")


@stores_bp.get("")
@require_auth
@require_admin
def list_stores_route():
    try:
        return jsonify(store_service.list_stores(build_query(request.args))), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to list stores")


@stores_bp.get("/mine")
@require_auth
def my_store_route():
    try:
        store = store_service.get_store_of_owner(g.current_user)
        return jsonify({"store": store.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load store")


@stores_bp.get("/<slug>")
def public_store_route(slug: str):
    """Public storefront: store, products and currently active banners."""
    try:
        return jsonify({"store": store_service.get_public_store(slug, utcnow())}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to load store")


@stores_bp.patch("/<int:store_id>")
@require_auth
def update_store_route(store_id: int):
    try:
        data = request.get_json(silent=True) or {}
        store = store_service.update_store(store_id, g.current_user, data)
        return jsonify({"store": store.to_dict()}), 200
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to update store")


@stores_bp.delete("/<int:store_id>")
@require_auth
def delete_store_route(store_id: int):
    try:
        store_service.delete_store(store_id, g.current_user)
        return "", 204
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to delete store")


@stores_bp.post("/<int:store_id>/banners")
@require_auth
def add_banner_route(store_id: int):
    try:
        data = request.get_json(silent=True) or {}
        banner = store_service.add_banner(store_id, g.current_user, data)
        return jsonify({"banner": banner.to_dict()}), 201
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to add banner")


@stores_bp.delete("/<int:store_id>/banners/<int:banner_id>")
@require_auth
def remove_banner_route(store_id: int, banner_id: int):
    try:
        store_service.remove_banner(store_id, banner_id, g.current_user)
        return "", 204
    except StorefrontError as e:
        return error_response(e)
    except Exception:
        return server_error("Failed to remove banner")


@stores_bp.post("/<int:store_id>/images/<category>")
@require_auth
def upload_store_image_route(store_id: int, category: str):
    """
    Upload a logo, hero or banner image (multipart field "image").

    logo/hero update the store immediately; banner only returns the
    filename for a later POST /banners.
    """
    settings = get_settings()
    filename = None
    try:
        store = store_service.get_store(store_id)
        require_owner(g.current_user, store, label="Store", action="update")

        if category not in ("logo", "hero", "banner"):
            raise ValidationError("category must be one of: logo, hero, banner")

        filename = image_service.save_image(request.files.get("image"), category, store.id, settings)

        if category in IMAGE_FIELDS:
            field = IMAGE_FIELDS[category]
            previous = getattr(store, field)
            store = store_service.update_store(store_id, g.current_user, {field: filename})
            if previous and previous != filename:
                image_service.remove_image(previous, category, settings)
            return jsonify({"filename": filename, "store": store.to_dict()}), 200
        return jsonify({"filename": filename}), 201
    except StorefrontError as e:
        image_service.remove_image(filename, category, settings)
        return error_response(e)
    except Exception:
        return server_error("Failed to upload store image")
