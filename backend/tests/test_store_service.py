"""
Store service tests.

Verifies:
- Slugs are derived from names and recomputed on rename
- One store per owner and unique names, including under a racing insert
- Banner windows are inclusive on both ends
- Deleting a store removes everything that belongs to it
"""

import re
from datetime import datetime, timedelta

import pytest

from storefront.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from storefront.extensions import db
from storefront.models import Product, Purchase, PurchaseLine, Store, StoreBanner
from storefront.services import purchase_service, store_service
from storefront.text_utils import slugify


# =============================================================================
# SLUGS
# =============================================================================


class TestSlugify:

    @pytest.mark.parametrize("name, slug", [
        ("Main Street Shop", "main-street-shop"),
        ("  Café   Crème!! ", "cafe-creme"),
        ("A&B -- Goods", "a-b-goods"),
        ("Shop 42", "shop-42"),
        ("!!!", ""),
        ("Straße Shop", "strasse-shop"),
        ("Ærø Øst", "aero-ost"),
    ])
    def test_examples(self, name, slug):
        assert slugify(name) == slug

    def test_deterministic(self):
        assert slugify("Corner Store") == slugify("Corner Store")

    def test_arabic_name_transliterated(self):
        slug = slugify("متجر بياع")
        assert slug
        assert re.fullmatch(r"[a-z0-9]+(-[a-z0-9]+)*", slug)

    def test_arabic_store_name_accepted(self, owner):
        store = store_service.create_store(owner, {"name": "متجر بياع", "hero_image": "hero.jpg"})
        assert store.slug == slugify("متجر بياع")


class TestCreateStore:

    def test_slug_from_name(self, owner):
        store = store_service.create_store(owner, {"name": "Corner  Store", "hero_image": "hero.jpg"})
        assert store.name == "Corner Store"
        assert store.slug == "corner-store"
        assert store.owner_id == owner.id
        assert store.is_active is False

    def test_required_fields(self, owner):
        with pytest.raises(ValidationError):
            store_service.create_store(owner, {"name": "No Hero"})

    def test_name_without_letters_rejected(self, owner):
        with pytest.raises(ValidationError):
            store_service.create_store(owner, {"name": "!!!", "hero_image": "hero.jpg"})

    def test_owner_id_not_writable(self, owner, other_owner):
        with pytest.raises(ValidationError):
            store_service.create_store(owner, {"name": "Shop", "hero_image": "h.jpg", "owner_id": other_owner.id})

    def test_second_store_for_owner_conflicts(self, owner, store):
        with pytest.raises(ConflictError) as exc:
            store_service.create_store(owner, {"name": "Second Shop", "hero_image": "hero.jpg"})
        assert exc.value.message == store_service.DUPLICATE_OWNER_MESSAGE
        assert db.session.query(Store).filter_by(owner_id=owner.id).count() == 1

    def test_duplicate_name_conflicts(self, other_owner, store):
        with pytest.raises(ConflictError) as exc:
            store_service.create_store(other_owner, {"name": "store  s", "hero_image": "hero.jpg"})
        assert exc.value.message == store_service.DUPLICATE_NAME_MESSAGE

    def test_racing_insert_reported_as_conflict(self, monkeypatch, owner, store):
        """The pre-check misses the existing row; the unique constraint still holds."""
        real_check = store_service._owner_has_store
        calls = []

        def stale_check(owner_id):
            calls.append(owner_id)
            return False if len(calls) == 1 else real_check(owner_id)

        monkeypatch.setattr(store_service, "_owner_has_store", stale_check)

        with pytest.raises(ConflictError) as exc:
            store_service.create_store(owner, {"name": "Racer", "hero_image": "hero.jpg"})

        assert exc.value.message == store_service.DUPLICATE_OWNER_MESSAGE
        assert db.session.query(Store).filter_by(owner_id=owner.id).count() == 1


class TestUpdateStore:

    def test_rename_recomputes_slug(self, store, owner):
        updated = store_service.update_store(store.id, owner, {"name": "Renamed Shop"})
        assert updated.slug == "renamed-shop"
        assert store_service.get_store_by_slug("renamed-shop").id == store.id
        with pytest.raises(NotFoundError):
            store_service.get_store_by_slug("store-s")

    def test_other_fields_keep_slug(self, store, owner):
        updated = store_service.update_store(store.id, owner, {"heading": "Hello", "name": ""})
        assert updated.slug == "store-s"
        assert updated.heading == "Hello"

    def test_rename_into_taken_slug(self, store, other_store, owner):
        with pytest.raises(ConflictError):
            store_service.update_store(store.id, owner, {"name": "Other  Store"})

    def test_foreign_owner_forbidden(self, store, other_owner):
        with pytest.raises(PermissionDeniedError):
            store_service.update_store(store.id, other_owner, {"heading": "Mine now"})

    def test_is_active_admin_only(self, store, owner, admin):
        with pytest.raises(ValidationError):
            store_service.update_store(store.id, owner, {"is_active": True})
        assert store_service.update_store(store.id, admin, {"is_active": True}).is_active is True

    def test_invalid_brand_color(self, store, owner):
        with pytest.raises(ValidationError):
            store_service.update_store(store.id, owner, {"brand_color": "blue"})

    def test_missing_store(self, owner):
        with pytest.raises(NotFoundError):
            store_service.update_store(999, owner, {"heading": "x"})


# =============================================================================
# BANNERS
# =============================================================================


START = datetime(2026, 1, 1)
END = datetime(2026, 1, 31)


class TestBanners:

    @pytest.fixture
    def banner(self, store, owner):
        return store_service.add_banner(
            store.id, owner, {"title": "Sale", "start_date": "2026-01-01T00:00:00Z", "end_date": "2026-01-31T00:00:00"}
        )

    @pytest.mark.parametrize("now, visible", [
        (START - timedelta(microseconds=1), False),
        (START, True),
        (START + timedelta(days=10), True),
        (END, True),
        (END + timedelta(microseconds=1), False),
    ])
    def test_window_is_inclusive(self, store, banner, now, visible):
        public = store_service.get_public_store(store.slug, now)
        assert [b["id"] for b in public["banners"]] == ([banner.id] if visible else [])

    def test_start_after_end_rejected(self, store, owner):
        with pytest.raises(ValidationError):
            store_service.add_banner(store.id, owner, {"start_date": "2026-02-01", "end_date": "2026-01-01"})

    def test_dates_required(self, store, owner):
        with pytest.raises(ValidationError):
            store_service.add_banner(store.id, owner, {"title": "No dates"})

    def test_foreign_owner_cannot_add_or_remove(self, store, banner, other_owner):
        with pytest.raises(PermissionDeniedError):
            store_service.add_banner(store.id, other_owner, {"start_date": "2026-01-01", "end_date": "2026-01-02"})
        with pytest.raises(PermissionDeniedError):
            store_service.remove_banner(store.id, banner.id, other_owner)

    def test_remove(self, store, banner, owner):
        banner_id = banner.id
        store_service.remove_banner(store.id, banner_id, owner)
        assert db.session.get(StoreBanner, banner_id) is None

    def test_remove_from_wrong_store_is_not_found(self, store, other_store, banner, other_owner):
        with pytest.raises(NotFoundError):
            store_service.remove_banner(other_store.id, banner.id, other_owner)


# =============================================================================
# PUBLIC VIEW AND DELETION
# =============================================================================


class TestPublicStore:

    def test_products_newest_first_and_no_purchases(self, store, make_product):
        make_product(store, name="Old")
        make_product(store, name="New")
        public = store_service.get_public_store(store.slug, datetime(2026, 1, 1))

        assert [p["name"] for p in public["products"]] == ["New", "Old"]
        assert "purchases" not in public
        assert "version_id" not in public
        assert all("version_id" not in p for p in public["products"])

    def test_unknown_slug(self):
        with pytest.raises(NotFoundError):
            store_service.get_public_store("nope", datetime(2026, 1, 1))

    def test_store_of_owner(self, owner, other_owner, store):
        assert store_service.get_store_of_owner(owner).id == store.id
        with pytest.raises(NotFoundError):
            store_service.get_store_of_owner(other_owner)


class TestDeleteStore:

    def test_cascades_to_everything_owned(self, store, owner, make_product):
        product = make_product(store)
        store_service.add_banner(store.id, owner, {"start_date": "2026-01-01", "end_date": "2026-01-02"})
        purchase_service.create_purchase(
            store.slug,
            [{"product_id": product.id}],
            {"customer_name": "C", "customer_phone": "1", "customer_address": "A"},
        )
        store_id = store.id

        store_service.delete_store(store_id, owner)

        assert db.session.get(Store, store_id) is None
        for model in (Product, StoreBanner, Purchase):
            assert db.session.query(model).filter_by(store_id=store_id).count() == 0
        assert db.session.query(PurchaseLine).count() == 0

    def test_foreign_owner_forbidden(self, store, other_owner):
        with pytest.raises(PermissionDeniedError):
            store_service.delete_store(store.id, other_owner)
        assert db.session.get(Store, store.id) is not None

    def test_admin_may_delete(self, store, admin):
        store_id = store.id
        store_service.delete_store(store_id, admin)
        assert db.session.get(Store, store_id) is None
