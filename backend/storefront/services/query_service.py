# Overview: Translates list query-string parameters into SQLAlchemy filters, ordering and paging.

"""
List Query Builder

Query-string grammar shared by every listing endpoint:

    ?price_cents[gte]=1000&price_cents[lt]=5000   comparison filters
    ?color=red                                    equality filter
    ?sort=-price_cents,name                       ordering ("-" = descending)
    ?fields=name,price_cents                      projection of serialized rows
    ?page=2&limit=20                              paging (defaults 1 / 100)

build_query() only parses; it knows nothing about models. apply_list_query()
checks every filter and sort field against the caller's allow-lists, coerces
values with the column type and builds the SQL. Keys such as
``price_cents[foo]`` (unknown operator) are kept as literal equality on the
key ``"price_cents[foo]"``, which no allow-list contains, so they are
rejected rather than silently matching nothing.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from ..errors import ValidationError
from ..validation import MAX_SQL_INTEGER, coerce_value

RESERVED_PARAMS = frozenset({"page", "sort", "limit", "fields"})
COMPARISON_OPERATORS = {
    "gte": operator.ge,
    "gt": operator.gt,
    "lte": operator.le,
    "lt": operator.lt,
}

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 100
DEFAULT_SORT = "-created_at"
HIDDEN_FIELDS = frozenset({"version_id"})

_BRACKET_KEY_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\[([A-Za-z0-9_]+)\]$")


@dataclass(frozen=True)
class FilterClause:
    field: str
    op: str  # "eq" or one of COMPARISON_OPERATORS
    value: Any


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class ListQuery:
    filters: tuple[FilterClause, ...] = ()
    sort: tuple[SortKey, ...] = ()
    fields: tuple[str, ...] | None = None
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    skip: int = 0


def _positive_int(raw: Any, default: int) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if 0 < value <= MAX_SQL_INTEGER else default


def _split_csv(raw: Any) -> list[str]:
    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


def _parse_sort(raw: Any) -> tuple[SortKey, ...]:
    keys = []
    for token in _split_csv(raw) or [DEFAULT_SORT]:
        if token.startswith("-"):
            keys.append(SortKey(token[1:], descending=True))
        else:
            keys.append(SortKey(token.lstrip("+")))
    return tuple(k for k in keys if k.field)


def build_query(raw_params: Mapping[str, Any] | None) -> ListQuery:
    """
    Parse request parameters into a ListQuery.

    Accepts a plain dict or a werkzeug MultiDict (first value per key wins).
    """
    params = dict(raw_params.items()) if raw_params else {}

    filters = []
    for key, value in params.items():
        if key in RESERVED_PARAMS:
            continue
        match = _BRACKET_KEY_RE.match(key)
        if match and match.group(2) in COMPARISON_OPERATORS:
            filters.append(FilterClause(match.group(1), match.group(2), value))
        else:
            # Unknown operators stay as literal keys
            filters.append(FilterClause(key, "eq", value))

    fields = _split_csv(params.get("fields"))
    page = _positive_int(params.get("page"), DEFAULT_PAGE)
    limit = _positive_int(params.get("limit"), DEFAULT_LIMIT)
    if (page - 1) * limit > MAX_SQL_INTEGER:
        page = DEFAULT_PAGE

    return ListQuery(
        filters=tuple(filters),
        sort=_parse_sort(params.get("sort")),
        fields=tuple(fields) if fields else None,
        page=page,
        limit=limit,
        skip=(page - 1) * limit,
    )


def apply_list_query(query, model, list_query: ListQuery, *, filterable: Iterable[str], sortable: Iterable[str]):
    """
    Apply filters and ordering (not paging) from ``list_query`` to ``query``.

    Raises ValidationError for a field outside the allow-lists or a value
    that does not coerce to the column type.
    """
    filterable = frozenset(filterable)
    sortable = frozenset(sortable)
    columns = {c.key: c for c in model.__mapper__.columns}

    for clause in list_query.filters:
        if clause.field not in filterable or clause.field not in columns:
            raise ValidationError(
                f"Cannot filter by field: {clause.field}",
                details={"filterable": sorted(filterable)},
            )
        col = columns[clause.field]
        value = coerce_value(col, clause.value)
        attr = getattr(model, clause.field)
        if clause.op == "eq":
            query = query.filter(attr == value)
        else:
            query = query.filter(COMPARISON_OPERATORS[clause.op](attr, value))

    order_by = []
    for key in list_query.sort:
        if key.field not in sortable or key.field not in columns:
            raise ValidationError(
                f"Cannot sort by field: {key.field}",
                details={"sortable": sorted(sortable)},
            )
        attr = getattr(model, key.field)
        order_by.append(attr.desc() if key.descending else attr.asc())

    if "id" not in {k.field for k in list_query.sort}:
        # Stable order for rows sharing a timestamp
        last_desc = list_query.sort[-1].descending if list_query.sort else True
        order_by.append(model.id.desc() if last_desc else model.id.asc())

    return query.order_by(*order_by)


def paginate(query, list_query: ListQuery) -> tuple[list, int]:
    """Return (rows for the requested page, total matching rows)."""
    total = query.order_by(None).count()
    rows = query.offset(list_query.skip).limit(list_query.limit).all()
    return rows, total


def project(row: dict, fields: Iterable[str] | None) -> dict:
    """
    Apply field selection to one serialized row.

    No selection: everything except internal fields (version_id).
    Selection: only the named fields, plus ``id``. Names the row does not
    have are ignored.
    """
    if fields is None:
        return {k: v for k, v in row.items() if k not in HIDDEN_FIELDS}
    wanted = set(fields) | {"id"}
    return {k: v for k, v in row.items() if k in wanted}


def listing_response(rows: list, total: int, list_query: ListQuery, serialize: Callable[[Any], dict]) -> dict:
    items = [project(serialize(row), list_query.fields) for row in rows]
    total_pages = (total + list_query.limit - 1) // list_query.limit if total > 0 else 1
    return {
        "items": items,
        "count": len(items),
        "pagination": {
            "page": list_query.page,
            "limit": list_query.limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": list_query.page < total_pages,
            "has_prev": list_query.page > 1,
        },
    }
