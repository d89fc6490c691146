"""
List query builder tests.

Verifies:
- Bracketed comparison keys become range filters; other keys are equality
- Unknown operators stay literal and are rejected by the allow-lists
- Sort defaults to newest first; "-" means descending
- Projection hides internal fields and always keeps id
- Paging falls back to defaults on bad input
"""

import pytest

from storefront.errors import ValidationError
from storefront.services import products_service
from storefront.services.query_service import (
    DEFAULT_LIMIT,
    FilterClause,
    SortKey,
    build_query,
    listing_response,
    project,
)


# =============================================================================
# PARSING
# =============================================================================


class TestBuildQuery:

    def test_defaults(self):
        lq = build_query({})
        assert lq.filters == ()
        assert lq.sort == (SortKey("created_at", descending=True),)
        assert lq.fields is None
        assert (lq.page, lq.limit, lq.skip) == (1, DEFAULT_LIMIT, 0)

    def test_none_is_empty(self):
        assert build_query(None) == build_query({})

    def test_comparison_and_equality(self):
        lq = build_query({"price_cents[gte]": "1000", "price_cents[lt]": "5000", "color": "red"})
        assert set(lq.filters) == {
            FilterClause("price_cents", "gte", "1000"),
            FilterClause("price_cents", "lt", "5000"),
            FilterClause("color", "eq", "red"),
        }

    def test_unknown_operator_kept_as_literal_key(self):
        lq = build_query({"price_cents[foo]": "1"})
        assert lq.filters == (FilterClause("price_cents[foo]", "eq", "1"),)

    def test_reserved_params_are_not_filters(self):
        lq = build_query({"page": "2", "limit": "5", "sort": "name", "fields": "name"})
        assert lq.filters == ()

    def test_sort_keys(self):
        lq = build_query({"sort": "-price_cents, name,+color"})
        assert lq.sort == (
            SortKey("price_cents", descending=True),
            SortKey("name"),
            SortKey("color"),
        )

    def test_fields(self):
        assert build_query({"fields": "name, price_cents,"}).fields == ("name", "price_cents")

    def test_paging(self):
        lq = build_query({"page": "3", "limit": "20"})
        assert (lq.page, lq.limit, lq.skip) == (3, 20, 40)

    @pytest.mark.parametrize("page, limit", [("0", "-5"), ("abc", "1.5"), ("", " "), (True, False)])
    def test_invalid_paging_uses_defaults(self, page, limit):
        lq = build_query({"page": page, "limit": limit})
        assert (lq.page, lq.limit, lq.skip) == (1, DEFAULT_LIMIT, 0)

    def test_paging_beyond_integer_range_uses_defaults(self):
        assert build_query({"page": "9" * 30, "limit": "10"}).skip == 0
        assert build_query({"limit": "9" * 30}).limit == DEFAULT_LIMIT

        lq = build_query({"page": str(2 ** 62), "limit": "100"})
        assert (lq.page, lq.skip) == (1, 0)


class TestProject:

    ROW = {"id": 1, "name": "Cap", "price_cents": 500, "version_id": 3}

    def test_default_hides_internal_fields(self):
        assert project(self.ROW, None) == {"id": 1, "name": "Cap", "price_cents": 500}

    def test_selection_always_keeps_id(self):
        assert project(self.ROW, ("name",)) == {"id": 1, "name": "Cap"}

    def test_unknown_names_ignored(self):
        assert project(self.ROW, ("nope",)) == {"id": 1}

    def test_listing_pagination_block(self):
        lq = build_query({"page": "2", "limit": "2"})
        body = listing_response([self.ROW], 5, lq, dict)
        assert body["count"] == 1
        assert body["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 5,
            "total_pages": 3,
            "has_next": True,
            "has_prev": True,
        }


# =============================================================================
# APPLIED TO A CATALOG
# =============================================================================


@pytest.fixture
def catalog(store, make_product):
    return [
        make_product(store, name="Alpha", price_cents=500, color="red"),
        make_product(store, name="Bravo", price_cents=1500, color="blue"),
        make_product(store, name="Charlie", price_cents=2500, color="red"),
        make_product(store, name="Delta", price_cents=3500, color="green"),
    ]


def names(result):
    return [item["name"] for item in result["items"]]


class TestAppliedQuery:

    def test_range_filter(self, store, catalog):
        lq = build_query({"price_cents[gte]": "1500", "price_cents[lt]": "3500", "sort": "price_cents"})
        assert names(products_service.list_products(store.id, lq)) == ["Bravo", "Charlie"]

    def test_equality_filter(self, store, catalog):
        lq = build_query({"color": "red", "sort": "name"})
        assert names(products_service.list_products(store.id, lq)) == ["Alpha", "Charlie"]

    def test_default_sort_newest_first(self, store, catalog):
        assert names(products_service.list_products(store.id, build_query({}))) == [
            "Delta", "Charlie", "Bravo", "Alpha",
        ]

    def test_descending_sort(self, store, catalog):
        lq = build_query({"sort": "-price_cents"})
        assert names(products_service.list_products(store.id, lq))[0] == "Delta"

    def test_projection(self, store, catalog):
        lq = build_query({"fields": "name", "sort": "name", "limit": "1"})
        assert products_service.list_products(store.id, lq)["items"] == [{"id": catalog[0].id, "name": "Alpha"}]

    def test_paging(self, store, catalog):
        lq = build_query({"sort": "name", "page": "2", "limit": "3"})
        result = products_service.list_products(store.id, lq)
        assert names(result) == ["Delta"]
        assert result["pagination"]["total"] == 4
        assert result["pagination"]["has_next"] is False

    def test_only_the_stores_products(self, store, other_store, make_product, catalog):
        make_product(other_store, name="Elsewhere")
        assert "Elsewhere" not in names(products_service.list_products(store.id, build_query({})))

    def test_literal_key_rejected(self, store, catalog):
        with pytest.raises(ValidationError) as exc:
            products_service.list_products(store.id, build_query({"price_cents[foo]": "1"}))
        assert "price_cents[foo]" in exc.value.message

    @pytest.mark.parametrize("params", [{"owner_id": "1"}, {"sort": "owner_id"}, {"sort": "-bogus"}])
    def test_fields_outside_allow_lists_rejected(self, store, catalog, params):
        with pytest.raises(ValidationError):
            products_service.list_products(store.id, build_query(params))

    def test_uncoercible_value_rejected(self, store, catalog):
        with pytest.raises(ValidationError):
            products_service.list_products(store.id, build_query({"price_cents[gte]": "12.5"}))

    @pytest.mark.parametrize("value", ["99999999999999999999", "-99999999999999999999", "²"])
    def test_out_of_range_or_non_decimal_integer_rejected(self, store, catalog, value):
        with pytest.raises(ValidationError):
            products_service.list_products(store.id, build_query({"price_cents[gte]": value}))
