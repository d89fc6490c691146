# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

"""
Purchase Engine

create_purchase() runs in three phases:

1. validate_cart()   resolve every cart item against the store's catalog;
                     nothing is written, the first bad item aborts
2. compute_totals()  pure arithmetic on integer cents
3. persistence       one transaction: insert purchase + lines, then one
                     atomic ``purchase_count = purchase_count + n`` per
                     distinct product

Because every item is validated before anything is written, a bad item at
any position leaves no purchase row and no counter change behind.

Prices are captured once, in phase 1, and copied into the lines. Later
product edits never touch an existing purchase.

Status changes follow ALLOWED_TRANSITIONS; delivered and canceled are
terminal.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from flask import current_app

from ..errors import NotFoundError, StorefrontError, ValidationError
from ..extensions import db
from ..models import PRODUCT_SIZES, PURCHASE_STATUSES, Product, Purchase, PurchaseLine, Store
from ..models.purchases import (
    STATUS_CANCELED,
    STATUS_DELIVERED,
    STATUS_PAID,
    STATUS_PENDING,
    STATUS_SHIPPED,
)
from ..validation import MAX_PRICE_CENTS, MAX_SQL_INTEGER, parse_quantity
from .concurrency import begin_immediate, increment_counter, lock_for_update, run_with_retry
from .permission_service import require_owner
from .query_service import ListQuery, apply_list_query, build_query, listing_response, paginate

ALLOWED_TRANSITIONS = {
    STATUS_PENDING: (STATUS_PAID, STATUS_CANCELED),
    STATUS_PAID: (STATUS_SHIPPED, STATUS_CANCELED),
    STATUS_SHIPPED: (STATUS_DELIVERED, STATUS_CANCELED),
    STATUS_DELIVERED: (),
    STATUS_CANCELED: (),
}

# Line and grand totals share the product price ceiling
MAX_PURCHASE_TOTAL_CENTS = MAX_PRICE_CENTS

CUSTOMER_FIELDS = ("customer_name", "customer_phone", "customer_address")

PURCHASE_FILTERABLE = ("id", "status", "is_pod", "grand_total_cents", "created_at", "updated_at")
PURCHASE_SORTABLE = PURCHASE_FILTERABLE


@dataclass(frozen=True)
class ResolvedItem:
    """A cart item checked against the catalog, price captured."""
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int
    size: str | None


@dataclass(frozen=True)
class LineSnapshot:
    position: int
    product_id: int
    name: str
    quantity: int
    size: str | None
    unit_price_cents: int
    total_price_cents: int


@dataclass(frozen=True)
class CustomerDetails:
    customer_name: str
    customer_phone: str
    customer_address: str
    is_pod: bool = False
    pod_image: str | None = None


# =============================================================================
# PHASE 1: VALIDATION
# =============================================================================

def _item_product_id(item: Any) -> int | None:
    """Product id of a cart item, or None when it is missing or malformed."""
    raw = item.get("product_id", item.get("product")) if isinstance(item, dict) else None
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        product_id = raw
    elif isinstance(raw, str) and raw.strip().isdecimal():
        try:
            product_id = int(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if not 1 <= product_id <= MAX_SQL_INTEGER:
        return None
    return product_id


def _item_size(product: Product, raw: Any, index: int) -> str | None:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise ValidationError("size must be a string", details={"index": index})

    size = raw.strip().upper()
    allowed = list(product.available_sizes or []) or list(PRODUCT_SIZES)
    if size not in allowed:
        raise ValidationError(
            f"Size {raw} is not available for product {product.id}",
            details={"product_id": product.id, "index": index, "allowed": allowed},
        )
    return size


def validate_cart(store: Store, items: Any) -> list[ResolvedItem]:
    """
    Resolve every cart item, in order, against ``store``.

    No writes. Raises ValidationError for the first item whose product is
    missing or belongs to another store, or whose quantity/size is invalid.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("No products in cart")

    ids = [_item_product_id(item) for item in items]
    products = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_({i for i in ids if i is not None})).all()
    }

    resolved = []
    for index, (item, product_id) in enumerate(zip(items, ids)):
        if not isinstance(item, dict):
            raise ValidationError("Each cart item must be an object", details={"index": index})

        product = products.get(product_id)
        if product is None or product.store_id != store.id:
            shown = product_id if product_id is not None else item.get("product_id", item.get("product"))
            raise ValidationError(
                f"Product {shown} not found in this store",
                details={"product_id": shown, "index": index},
            )

        try:
            quantity = parse_quantity(item.get("quantity"))
        except ValidationError as exc:
            raise ValidationError(exc.message, details={"product_id": product_id, "index": index})

        resolved.append(ResolvedItem(
            product_id=product.id,
            name=product.name,
            unit_price_cents=product.price_cents,
            quantity=quantity,
            size=_item_size(product, item.get("size"), index),
        ))

    return resolved


def validate_customer(customer: Any) -> CustomerDetails:
    if not isinstance(customer, dict):
        customer = {}

    values = {}
    for key in CUSTOMER_FIELDS:
        value = str(customer.get(key) or "").strip()
        if not value:
            raise ValidationError(f"{key} is required")
        values[key] = value

    is_pod = customer.get("is_pod", False)
    if not isinstance(is_pod, bool):
        raise ValidationError("is_pod must be a boolean")

    pod_image = str(customer.get("pod_image") or "").strip() or None
    return CustomerDetails(is_pod=is_pod, pod_image=pod_image, **values)


# =============================================================================
# PHASE 2: TOTALS
# =============================================================================

def compute_totals(resolved: list[ResolvedItem]) -> tuple[list[LineSnapshot], int]:
    """
    Line totals and grand total in integer cents. Pure.

    Raises ValidationError when a line or the grand total exceeds
    MAX_PURCHASE_TOTAL_CENTS.
    """
    lines = [
        LineSnapshot(
            position=position,
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            size=item.size,
            unit_price_cents=item.unit_price_cents,
            total_price_cents=item.unit_price_cents * item.quantity,
        )
        for position, item in enumerate(resolved)
    ]
    for line in lines:
        if line.total_price_cents > MAX_PURCHASE_TOTAL_CENTS:
            raise ValidationError(
                f"Line total cannot exceed {MAX_PURCHASE_TOTAL_CENTS} cents",
                details={"product_id": line.product_id, "index": line.position},
            )
    grand_total = sum(line.total_price_cents for line in lines)
    if grand_total > MAX_PURCHASE_TOTAL_CENTS:
        raise ValidationError(f"Purchase total cannot exceed {MAX_PURCHASE_TOTAL_CENTS} cents")
    return lines, grand_total


def quantities_by_product(lines: list[LineSnapshot]) -> dict[int, int]:
    totals: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals


# =============================================================================
# PHASE 3: PERSISTENCE
# =============================================================================

def create_purchase(store_slug: str, items: Any, customer: Any) -> Purchase:
    """
    Validate, price and persist a customer purchase against ``store_slug``.

    Either the purchase, its lines and every counter increment are
    committed together, or nothing is.
    """
    def _op():
        begin_immediate()
        try:
            store = db.session.query(Store).filter(Store.slug == store_slug).first()
            if not store:
                raise NotFoundError("Store not found")

            resolved = validate_cart(store, items)
            details = validate_customer(customer)
            lines, grand_total = compute_totals(resolved)

            purchase = Purchase(
                store_id=store.id,
                is_pod=details.is_pod,
                pod_image=details.pod_image,
                customer_name=details.customer_name,
                customer_phone=details.customer_phone,
                customer_address=details.customer_address,
                grand_total_cents=grand_total,
                status=STATUS_PENDING,
            )
            purchase.lines = [
                PurchaseLine(
                    position=line.position,
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    size=line.size,
                    unit_price_cents=line.unit_price_cents,
                    total_price_cents=line.total_price_cents,
                )
                for line in lines
            ]
            db.session.add(purchase)
            db.session.flush()

            for product_id, quantity in quantities_by_product(lines).items():
                matched = increment_counter(Product, product_id, Product.purchase_count, quantity)
                if not matched:
                    raise ValidationError(
                        f"Product {product_id} not found in this store",
                        details={"product_id": product_id},
                    )

            db.session.commit()
        except StorefrontError:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Purchase %s created for store %s (%s lines, %s cents)",
            purchase.id, store.id, len(lines), grand_total,
        )
        return purchase

    return run_with_retry(_op)


# =============================================================================
# READ-BACK AND LIFECYCLE
# =============================================================================

def get_purchase(purchase_id: int, actor) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    return require_owner(actor, purchase, label="Purchase")


def list_store_purchases(store_slug: str, actor, list_query: ListQuery | None = None) -> dict:
    """Purchases of one store, newest first unless ``sort`` says otherwise."""
    store = db.session.query(Store).filter(Store.slug == store_slug).first()
    require_owner(actor, store, label="Store", action="view purchases of")

    list_query = list_query or build_query({})
    query = apply_list_query(
        db.session.query(Purchase).filter(Purchase.store_id == store.id),
        Purchase,
        list_query,
        filterable=PURCHASE_FILTERABLE,
        sortable=PURCHASE_SORTABLE,
    )
    rows, total = paginate(query, list_query)
    return listing_response(rows, total, list_query, Purchase.to_dict)


def update_status(purchase_id: int, new_status: Any, actor) -> Purchase:
    """
    Move a purchase to ``new_status``.

    404 if missing, 403 unless the actor controls the store, 400 for an
    unknown status or a transition not in ALLOWED_TRANSITIONS. Setting the
    current status again changes nothing.
    """
    def _op():
        purchase = lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id)).first()
        require_owner(actor, purchase, label="Purchase", action="update")

        if new_status not in PURCHASE_STATUSES:
            raise ValidationError(
                f"Invalid status: {new_status}",
                details={"allowed": list(PURCHASE_STATUSES)},
            )

        if new_status == purchase.status:
            return purchase

        allowed = ALLOWED_TRANSITIONS[purchase.status]
        if new_status not in allowed:
            raise ValidationError(
                f"Cannot change status from {purchase.status} to {new_status}",
                details={"allowed": list(allowed)},
            )

        purchase.status = new_status
        db.session.commit()
        current_app.logger.info("Purchase %s status -> %s by user %s", purchase.id, new_status, actor.id)
        return purchase

    return run_with_retry(_op)


def delete_purchase(purchase_id: int, actor) -> None:
    purchase = db.session.get(Purchase, purchase_id)
    require_owner(actor, purchase, label="Purchase", action="delete")

    db.session.delete(purchase)
    db.session.commit()
    current_app.logger.info("Purchase %s deleted by user %s", purchase_id, actor.id)
