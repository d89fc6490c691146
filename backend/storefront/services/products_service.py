# Overview: Service-layer operations for products; encapsulates business logic and database work.

"""
Products Service

OWNERSHIP: a product belongs to exactly one store. Its owner_id is copied
from the store at creation and never accepted from the client, so
store_id/owner_id are absent from every write policy.

purchase_count is maintained by purchase_service only.
"""
from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, PermissionDeniedError
from ..extensions import db
from ..models import Product, Store
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .concurrency import lock_for_update, run_with_retry
from .permission_service import require_owner
from .query_service import ListQuery, apply_list_query, listing_response, paginate

PRODUCT_MUTABLE_FIELDS = frozenset({
    "name",
    "description",
    "price_cents",
    "available_sizes",
    "color",
    "images",
    "tags",
    "is_trending",
})

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create=frozenset({"name", "price_cents"}),
)
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(writable_fields=PRODUCT_MUTABLE_FIELDS)

PRODUCT_FILTERABLE = ("id", "name", "price_cents", "purchase_count", "color", "is_trending", "created_at", "updated_at")
PRODUCT_SORTABLE = PRODUCT_FILTERABLE


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def create_product(store_id: int, actor, data: dict) -> Product:
    """
    Create a product in ``store_id``.

    The actor must control the store and have a verified email address.
    """
    store = db.session.get(Store, store_id)
    require_owner(actor, store, label="Store", action="add products to")

    if not getattr(actor, "email_verified", False):
        raise PermissionDeniedError("Please verify your email before adding products")

    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)

    product = Product(store_id=store.id, owner_id=store.owner_id)
    apply_product_patch(product, patch)

    db.session.add(product)
    db.session.commit()
    current_app.logger.info("Product %s created in store %s", product.id, store.id)
    return product


def list_products(store_id: int, list_query: ListQuery) -> dict:
    """Public, paginated product listing for one store."""
    if db.session.get(Store, store_id) is None:
        raise NotFoundError("Store not found")

    query = apply_list_query(
        db.session.query(Product).filter(Product.store_id == store_id),
        Product,
        list_query,
        filterable=PRODUCT_FILTERABLE,
        sortable=PRODUCT_SORTABLE,
    )
    rows, total = paginate(query, list_query)
    return listing_response(rows, total, list_query, Product.to_dict)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def update_product(product_id: int, actor, data: dict) -> Product:
    patch = validate_payload(model=Product, payload=data, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        require_owner(actor, product, label="Product", action="update")

        apply_product_patch(product, patch)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int, actor) -> None:
    """Delete a product. Existing purchase lines keep their snapshot."""
    product = db.session.get(Product, product_id)
    require_owner(actor, product, label="Product", action="delete")

    db.session.delete(product)
    db.session.commit()
    current_app.logger.info("Product %s deleted by user %s", product_id, actor.id)
