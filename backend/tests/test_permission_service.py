"""
Ownership authorization tests.

Verifies:
- authorize() allows exactly admins and the resource owner
- resolve_owner() walks User -> Store -> {Product, Banner, Purchase}
- require_owner() reports a broken chain as 404, a foreign actor as 403
"""

from types import SimpleNamespace

import pytest

from storefront.errors import NotFoundError, PermissionDeniedError, ValidationError
from storefront.models import ROLE_ADMIN, ROLE_STORE_OWNER, Product, Purchase, Store, StoreBanner, User
from storefront.services import permission_service, products_service
from storefront.services.permission_service import authorize, require_owner, resolve_owner


def actor(actor_id, role=ROLE_STORE_OWNER):
    return SimpleNamespace(id=actor_id, role=role)


# =============================================================================
# DECISION RULE
# =============================================================================


class TestAuthorize:
    """allow iff admin or owner; no other bypass."""

    @pytest.mark.parametrize("actor_id", [1, 2, 3, 10])
    @pytest.mark.parametrize("owner_id", [1, 2, 3, 10])
    @pytest.mark.parametrize("role", [ROLE_STORE_OWNER, ROLE_ADMIN, "customer", ""])
    def test_rule_over_grid(self, actor_id, owner_id, role):
        expected = role == ROLE_ADMIN or actor_id == owner_id
        assert authorize(actor(actor_id, role), owner_id) is expected

    def test_missing_owner_denies_even_admin(self):
        assert authorize(actor(1, ROLE_ADMIN), None) is False
        assert authorize(actor(1), None) is False

    def test_missing_actor_denies(self):
        assert authorize(None, 1) is False

    def test_actor_without_id_is_not_owner(self):
        assert authorize(actor(None), 5) is False


# =============================================================================
# OWNERSHIP CHAIN
# =============================================================================


class TestResolveOwner:
    """Works on transient objects: no database needed."""

    def test_store(self):
        assert resolve_owner(Store(owner_id=7, name="Shop")) == 7

    def test_product_uses_denormalized_owner(self):
        assert resolve_owner(Product(owner_id=7, store_id=3)) == 7

    def test_purchase_and_banner_walk_to_store_owner(self):
        shop = Store(owner_id=9, name="Shop")
        assert resolve_owner(Purchase(store=shop)) == 9
        assert resolve_owner(StoreBanner(store=shop)) == 9

    def test_dangling_store_reference_resolves_to_none(self):
        assert resolve_owner(Purchase()) is None
        assert resolve_owner(StoreBanner()) is None

    def test_unknown_resource_type(self):
        with pytest.raises(TypeError):
            resolve_owner(User())


class TestRequireOwner:

    def test_missing_resource_is_not_found(self):
        with pytest.raises(NotFoundError):
            require_owner(actor(1), None, label="Purchase")

    def test_broken_chain_is_not_found_not_forbidden(self):
        with pytest.raises(NotFoundError):
            require_owner(actor(1, ROLE_ADMIN), Purchase(), label="Purchase")

    def test_foreign_actor_is_forbidden(self):
        with pytest.raises(PermissionDeniedError) as exc:
            require_owner(actor(2), Store(owner_id=1, name="Shop"), label="Store", action="update")
        assert "update this store" in exc.value.message

    def test_owner_and_admin_pass(self):
        shop = Store(owner_id=1, name="Shop")
        assert require_owner(actor(1), shop, label="Store") is shop
        assert require_owner(actor(99, ROLE_ADMIN), shop, label="Store") is shop


# =============================================================================
# DENORMALIZED OWNER
# =============================================================================


class TestProductOwnerConsistency:

    def test_created_product_copies_store_owner(self, store, owner):
        product = products_service.create_product(store.id, owner, {"name": "Cap", "price_cents": 500})
        assert product.owner_id == store.owner_id
        assert permission_service.check_owner_consistency(product)

    def test_admin_created_product_belongs_to_store_owner(self, store, admin):
        product = products_service.create_product(store.id, admin, {"name": "Cap", "price_cents": 500})
        assert product.owner_id == store.owner_id != admin.id
        assert permission_service.check_owner_consistency(product)

    def test_owner_id_is_not_client_writable(self, store, owner, other_owner):
        with pytest.raises(ValidationError):
            products_service.create_product(
                store.id, owner, {"name": "Cap", "price_cents": 500, "owner_id": other_owner.id}
            )
