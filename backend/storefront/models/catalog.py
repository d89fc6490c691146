from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import validates

from ..extensions import db
from ..errors import ValidationError
from ..text_utils import normalize_whitespace, slugify
from storefront.time_utils import to_utc_z, utcnow, window_contains

PRODUCT_SIZES = ("XS", "S", "M", "L", "XL", "XXL")
MAX_PRODUCT_IMAGES = 2

DEFAULT_BRAND_COLOR = "#000000"
DEFAULT_HEADING = "Welcome to our store"
DEFAULT_SUB_HEADING = "Explore our products and enjoy shopping!"


class Store(db.Model):
    """
    A tenant storefront.

    OWNERSHIP: exactly one owner per store and at most one store per owner;
    the unique constraint on owner_id is the source of truth, so concurrent
    create attempts surface as IntegrityError rather than two rows.

    SLUG: derived from name on every assignment (see _derive_slug), used as
    the public lookup key.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("owner_id", name="uq_stores_owner"),
        db.UniqueConstraint("name", name="uq_stores_name"),
        db.UniqueConstraint("slug", name="uq_stores_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(160), nullable=False, index=True)

    store_information = db.Column(db.Text, nullable=True)
    what_sell = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False)

    # Presentation
    logo = db.Column(db.String(255), nullable=False, default="")
    brand_color = db.Column(db.String(16), nullable=False, default=DEFAULT_BRAND_COLOR)
    hero_image = db.Column(db.String(255), nullable=False)
    heading = db.Column(db.String(255), nullable=False, default=DEFAULT_HEADING)
    sub_heading = db.Column(db.String(255), nullable=False, default=DEFAULT_SUB_HEADING)
    footer = db.Column(db.JSON, nullable=False, default=lambda: {"social_links": {}, "quick_links": {}})

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("store", uselist=False, lazy=True))
    banners = db.relationship(
        "StoreBanner",
        backref="store",
        lazy=True,
        order_by="StoreBanner.start_date.asc(), StoreBanner.id.asc()",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @validates("name")
    def _derive_slug(self, key, value):
        name = normalize_whitespace(value)
        slug = slugify(name)
        if not slug:
            raise ValidationError("Store name must contain at least one letter or digit")
        self.slug = slug
        return name

    def __repr__(self) -> str:
        return f"<Store id={self.id} slug={self.slug!r} owner_id={self.owner_id}>"

    def active_banners(self, now: datetime) -> list["StoreBanner"]:
        return [b for b in self.banners if b.is_active_at(now)]

    def to_dict(self, *, include_owner: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "store_information": self.store_information,
            "what_sell": self.what_sell,
            "is_active": self.is_active,
            "logo": self.logo,
            "brand_color": self.brand_color,
            "hero_image": self.hero_image,
            "heading": self.heading,
            "sub_heading": self.sub_heading,
            "footer": self.footer or {},
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_owner:
            data["owner_id"] = self.owner_id
        return data


class StoreBanner(db.Model):
    """Time-bounded promotional banner; active iff start_date <= now <= end_date."""
    __tablename__ = "store_banners"
    __table_args__ = (
        db.Index("ix_store_banners_window", "store_id", "start_date", "end_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    image = db.Column(db.String(255), nullable=True)
    title = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)
    link = db.Column(db.String(512), nullable=True)

    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def is_active_at(self, now: datetime) -> bool:
        return window_contains(self.start_date, self.end_date, now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "image": self.image,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product listed by a store.

    DENORMALIZED: owner_id must equal Store(store_id).owner_id at all times.
    It is copied from the store at creation and is never client-writable,
    so authorization checks do not have to join through stores.

    purchase_count is only ever changed by atomic UPDATE ... SET
    purchase_count = purchase_count + n (see purchase_service).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_store_created", "store_id", "created_at"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price_cents = db.Column(db.Integer, nullable=False)
    purchase_count = db.Column(db.Integer, nullable=False, default=0)

    available_sizes = db.Column(db.JSON, nullable=False, default=list)
    color = db.Column(db.String(64), nullable=False, default="")
    images = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)
    is_trending = db.Column(db.Boolean, nullable=False, default=False)

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
        backref=db.backref("products", lazy=True, cascade="all, delete-orphan"),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} store_id={self.store_id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "purchase_count": self.purchase_count,
            "available_sizes": list(self.available_sizes or []),
            "color": self.color,
            "images": list(self.images or []),
            "tags": list(self.tags or []),
            "is_trending": self.is_trending,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
