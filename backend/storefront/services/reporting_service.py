# Overview: Aggregate statistics for administrators.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import PURCHASE_STATUSES, Product, Purchase, Store, User
from ..models.purchases import STATUS_CANCELED


def get_statistics() -> dict:
    """
    Platform totals plus one row per store.

    Revenue is the sum of grand_total_cents over purchases that were not
    canceled.
    """
    product_counts = dict(
        db.session.query(Product.store_id, func.count(Product.id))
        .group_by(Product.store_id)
        .all()
    )

    revenue = dict(
        db.session.query(Purchase.store_id, func.coalesce(func.sum(Purchase.grand_total_cents), 0))
        .filter(Purchase.status != STATUS_CANCELED)
        .group_by(Purchase.store_id)
        .all()
    )

    by_status: dict[int, dict[str, int]] = {}
    for store_id, status, count in (
        db.session.query(Purchase.store_id, Purchase.status, func.count(Purchase.id))
        .group_by(Purchase.store_id, Purchase.status)
        .all()
    ):
        by_status.setdefault(store_id, {})[status] = count

    stores = []
    for store in db.session.query(Store).order_by(Store.id.asc()).all():
        statuses = {status: by_status.get(store.id, {}).get(status, 0) for status in PURCHASE_STATUSES}
        stores.append({
            "store_id": store.id,
            "name": store.name,
            "slug": store.slug,
            "owner_id": store.owner_id,
            "product_count": product_counts.get(store.id, 0),
            "purchase_count": sum(statuses.values()),
            "revenue_cents": int(revenue.get(store.id, 0)),
            "purchases_by_status": statuses,
        })

    return {
        "store_count": len(stores),
        "user_count": db.session.query(func.count(User.id)).scalar() or 0,
        "product_count": sum(row["product_count"] for row in stores),
        "purchase_count": sum(row["purchase_count"] for row in stores),
        "revenue_cents": sum(row["revenue_cents"] for row in stores),
        "stores": stores,
    }
