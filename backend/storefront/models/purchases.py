from __future__ import annotations

from sqlalchemy import event, inspect

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow

STATUS_PENDING = "pending"
STATUS_PAID = "paid"
STATUS_SHIPPED = "shipped"
STATUS_DELIVERED = "delivered"
STATUS_CANCELED = "canceled"

PURCHASE_STATUSES = (
    STATUS_PENDING,
    STATUS_PAID,
    STATUS_SHIPPED,
    STATUS_DELIVERED,
    STATUS_CANCELED,
)

# Columns that may change after a purchase is written.
MUTABLE_PURCHASE_FIELDS = frozenset({"status", "updated_at", "version_id"})


class Purchase(db.Model):
    """
    Customer purchase placed against one store.

    IMMUTABLE: everything except status is frozen at creation; line items
    carry price snapshots so later product price changes never alter totals.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_store_created", "store_id", "created_at"),
        db.CheckConstraint("grand_total_cents >= 0", name="ck_purchases_total_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    is_pod = db.Column(db.Boolean, nullable=False, default=False)
    pod_image = db.Column(db.String(512), nullable=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    customer_address = db.Column(db.Text, nullable=False)

    grand_total_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=db.func.now(),
    )

    store = db.relationship(
        "Store",
        backref=db.backref("purchases", lazy=True, cascade="all, delete-orphan"),
    )
    lines = db.relationship(
        "PurchaseLine",
        backref="purchase",
        lazy=True,
        order_by="PurchaseLine.position.asc()",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} store_id={self.store_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "products": [line.to_dict() for line in self.lines],
            "is_pod": self.is_pod,
            "pod_image": self.pod_image,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "grand_total_cents": self.grand_total_cents,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PurchaseLine(db.Model):
    """
    Snapshot of one cart item at purchase time.

    product_id is a plain reference, not a foreign key: the line must
    survive deletion of the product it was bought from.
    """
    __tablename__ = "purchase_lines"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", "position", name="uq_purchase_lines_position"),
        db.CheckConstraint("quantity >= 1", name="ck_purchase_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    size = db.Column(db.String(8), nullable=True)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "size": self.size,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


@event.listens_for(PurchaseLine, "before_update")
def _reject_line_update(mapper, connection, target):
    raise ValueError("Purchase lines are immutable")


@event.listens_for(Purchase, "before_update")
def _reject_frozen_field_update(mapper, connection, target):
    state = inspect(target)
    for attr in mapper.column_attrs:
        if attr.key in MUTABLE_PURCHASE_FIELDS:
            continue
        if state.attrs[attr.key].history.has_changes():
            raise ValueError(f"Purchase field '{attr.key}' is immutable")
