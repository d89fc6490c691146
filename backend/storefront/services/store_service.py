# Overview: Service-layer operations for stores and their banners.

"""
Store Service

One store per owner. The owner (or an admin) edits presentation fields,
manages time-bounded banners and can delete the store; deletion removes
its banners, products, purchases and purchase lines in the same
transaction.

Uniqueness (one store per owner, unique name, unique slug) lives in the
database. The pre-checks below only give a friendlier message; a racing
insert still fails with IntegrityError and is reported as ConflictError.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Store, StoreBanner, User
from ..text_utils import slugify
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_banner,
    enforce_rules_store,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .permission_service import require_owner
from .query_service import ListQuery, apply_list_query, listing_response, paginate

STORE_FIELDS = frozenset({
    "name",
    "store_information",
    "what_sell",
    "logo",
    "brand_color",
    "hero_image",
    "heading",
    "sub_heading",
    "footer",
})

STORE_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=STORE_FIELDS,
    required_on_create=frozenset({"name", "hero_image"}),
)

# Blank form values mean "leave unchanged"
STORE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=STORE_FIELDS | {"is_active"},
    ignore_blank=True,
)

BANNER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"image", "title", "description", "link", "start_date", "end_date"}),
    required_on_create=frozenset({"start_date", "end_date"}),
)

STORE_FILTERABLE = ("id", "owner_id", "name", "slug", "is_active", "what_sell", "created_at", "updated_at")
STORE_SORTABLE = ("id", "name", "slug", "is_active", "created_at", "updated_at")

DUPLICATE_OWNER_MESSAGE = "You already have a store"
DUPLICATE_NAME_MESSAGE = "A store with this name already exists"


def _owner_has_store(owner_id: int) -> bool:
    return db.session.query(Store.id).filter(Store.owner_id == owner_id).first() is not None


def _slug_taken(slug: str, *, exclude_store_id: int | None = None) -> bool:
    query = db.session.query(Store.id).filter(Store.slug == slug)
    if exclude_store_id is not None:
        query = query.filter(Store.id != exclude_store_id)
    return query.first() is not None


def create_store(owner: User, data: dict) -> Store:
    """
    Create the caller's store.

    Raises ConflictError if the owner already has one or the name (or the
    slug derived from it) is taken.
    """
    patch = validate_payload(model=Store, payload=data, policy=STORE_CREATE_POLICY, partial=False)
    enforce_rules_store(patch)

    if _owner_has_store(owner.id):
        raise ConflictError(DUPLICATE_OWNER_MESSAGE)

    store = Store(owner_id=owner.id, **patch)
    if _slug_taken(store.slug):
        raise ConflictError(DUPLICATE_NAME_MESSAGE)

    db.session.add(store)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if _owner_has_store(owner.id):
            raise ConflictError(DUPLICATE_OWNER_MESSAGE)
        raise ConflictError(DUPLICATE_NAME_MESSAGE)

    current_app.logger.info("Store %s created by user %s", store.id, owner.id)
    return store


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    return store


def get_store_by_slug(slug: str) -> Store:
    store = db.session.query(Store).filter(Store.slug == slug).first()
    if not store:
        raise NotFoundError("Store not found")
    return store


def get_public_store(slug: str, now: datetime) -> dict:
    """
    Public storefront view: store fields, its products and the banners
    active at ``now``. Purchases are never part of this view.
    """
    store = get_store_by_slug(slug)
    data = store.to_dict()
    data.pop("version_id", None)
    data["products"] = [
        {k: v for k, v in p.to_dict().items() if k != "version_id"}
        for p in sorted(store.products, key=lambda p: (p.created_at, p.id), reverse=True)
    ]
    data["banners"] = [b.to_dict() for b in active_banners(store, now)]
    return data


def active_banners(store: Store, now: datetime) -> list[StoreBanner]:
    """Banners with start_date <= now <= end_date, boundaries inclusive."""
    return store.active_banners(now)


def get_store_of_owner(user: User) -> Store:
    store = db.session.query(Store).filter(Store.owner_id == user.id).first()
    if not store:
        raise NotFoundError("You do not have a store yet")
    return store


def list_stores(list_query: ListQuery) -> dict:
    query = apply_list_query(
        db.session.query(Store),
        Store,
        list_query,
        filterable=STORE_FILTERABLE,
        sortable=STORE_SORTABLE,
    )
    rows, total = paginate(query, list_query)
    return listing_response(rows, total, list_query, lambda s: s.to_dict(include_owner=True))


def update_store(store_id: int, actor, data: dict) -> Store:
    """
    Whitelisted partial update. Empty strings are ignored; a new name
    recomputes the slug. Only admins may toggle is_active.
    """
    patch = validate_payload(model=Store, payload=data, policy=STORE_UPDATE_POLICY, partial=True)
    enforce_rules_store(patch)
    if "is_active" in patch and not getattr(actor, "is_admin", False):
        raise ValidationError("Field not allowed: is_active")

    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        require_owner(actor, store, label="Store", action="update")

        if "name" in patch and slugify(patch["name"]) != store.slug:
            if _slug_taken(slugify(patch["name"]), exclude_store_id=store.id):
                raise ConflictError(DUPLICATE_NAME_MESSAGE)

        for key, value in patch.items():
            setattr(store, key, value)

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(DUPLICATE_NAME_MESSAGE)
        return store

    return run_with_retry(_op)


def delete_store(store_id: int, actor) -> None:
    store = db.session.get(Store, store_id)
    require_owner(actor, store, label="Store", action="delete")

    db.session.delete(store)
    db.session.commit()
    current_app.logger.info("Store %s deleted by user %s", store_id, actor.id)


def add_banner(store_id: int, actor, data: dict) -> StoreBanner:
    store = db.session.get(Store, store_id)
    require_owner(actor, store, label="Store", action="update")

    patch = validate_payload(model=StoreBanner, payload=data, policy=BANNER_POLICY, partial=False)
    enforce_rules_banner(patch)

    banner = StoreBanner(store_id=store.id, **patch)
    db.session.add(banner)
    db.session.commit()
    return banner


def remove_banner(store_id: int, banner_id: int, actor) -> None:
    banner = (
        db.session.query(StoreBanner)
        .filter(StoreBanner.id == banner_id, StoreBanner.store_id == store_id)
        .first()
    )
    require_owner(actor, banner, label="Banner", action="delete")

    db.session.delete(banner)
    db.session.commit()
