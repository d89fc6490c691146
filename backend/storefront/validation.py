from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models import MAX_PRODUCT_IMAGES, PRODUCT_SIZES
from storefront.time_utils import normalize_utc, parse_iso_datetime

# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

MIN_PASSWORD_LENGTH = 8

# Cart quantity per line
MAX_QUANTITY = 1_000

# Signed 64-bit range accepted by every supported database
MIN_SQL_INTEGER = -(2 ** 63)
MAX_SQL_INTEGER = 2 ** 63 - 1

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - ignore_blank: drop "" values instead of writing them (PATCH forms)
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()
    ignore_blank: bool = False


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _check_integer_range(col, number: int) -> int:
    if not MIN_SQL_INTEGER <= number <= MAX_SQL_INTEGER:
        raise ValidationError(f"{col.key} is out of range")
    return number


def coerce_value(col, value: Any):
    """Coerce a JSON or query-string value to the Python type of ``col``."""
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return _check_integer_range(col, value)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                number = int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
            return _check_integer_range(col, number)
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"true", "1", "yes"}:
                return True
            if lowered in {"false", "0", "no"}:
                return False
            raise ValidationError(f"{col.key} must be a boolean")
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return normalize_utc(value)
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # JSON columns arrive either decoded or as a JSON string from multipart forms
    if isinstance(coltype, JSON):
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be valid JSON")
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if policy.ignore_blank:
        payload = {k: v for k, v in payload.items() if v != ""}

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _string_list(value: Any, field: str) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list")
    items = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{field} must contain only strings")
        stripped = item.strip()
        if stripped:
            items.append(stripped)
    return items


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Normalizes list fields in place.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "available_sizes" in patch:
        sizes = [s.upper() for s in _string_list(patch["available_sizes"], "available_sizes")]
        invalid = [s for s in sizes if s not in PRODUCT_SIZES]
        if invalid:
            raise ValidationError(
                f"Invalid size(s): {', '.join(invalid)}",
                details={"allowed": list(PRODUCT_SIZES)},
            )
        # de-duplicate, keep canonical order
        patch["available_sizes"] = [s for s in PRODUCT_SIZES if s in sizes]

    if "images" in patch:
        images = _string_list(patch["images"], "images")
        if len(images) > MAX_PRODUCT_IMAGES:
            raise ValidationError(f"A product can have at most {MAX_PRODUCT_IMAGES} images")
        patch["images"] = images

    if "tags" in patch:
        patch["tags"] = list(dict.fromkeys(_string_list(patch["tags"], "tags")))


def enforce_rules_store(patch: dict) -> None:
    if patch.get("brand_color") and not _HEX_COLOR_RE.match(patch["brand_color"]):
        raise ValidationError("brand_color must be a hex color like #1a2b3c")

    if "footer" in patch:
        footer = patch["footer"]
        if not isinstance(footer, dict):
            raise ValidationError("footer must be an object")
        unknown = set(footer) - {"social_links", "quick_links"}
        if unknown:
            raise ValidationError(f"Unknown footer keys: {', '.join(sorted(unknown))}")
        for key in ("social_links", "quick_links"):
            if not isinstance(footer.get(key, {}), dict):
                raise ValidationError(f"footer.{key} must be an object")
        patch["footer"] = {
            "social_links": dict(footer.get("social_links") or {}),
            "quick_links": dict(footer.get("quick_links") or {}),
        }


def enforce_rules_banner(patch: dict) -> None:
    start = patch.get("start_date")
    end = patch.get("end_date")
    if start is None or end is None:
        raise ValidationError("Banner start_date and end_date are required")
    if start > end:
        raise ValidationError("Banner start_date must not be after end_date")


def normalize_email(value: Any) -> str:
    email = str(value or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email!")
    return email


def validate_new_password(password: Any, password_confirm: Any) -> str:
    """Minimum length plus confirmation match."""
    if not isinstance(password, str) or not password:
        raise ValidationError("Please provide a password!")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if password != password_confirm:
        raise ValidationError("Passwords are not the same!")
    return password


def parse_quantity(value: Any) -> int:
    """Cart quantity: defaults to 1, must be an integer from 1 to MAX_QUANTITY."""
    if value is None:
        return 1
    if isinstance(value, bool):
        raise ValidationError("quantity must be a positive integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().isdecimal():
        try:
            qty = int(value.strip())
        except ValueError:
            raise ValidationError("quantity must be a positive integer")
    else:
        raise ValidationError("quantity must be a positive integer")
    if qty < 1:
        raise ValidationError("quantity must be a positive integer")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")
    return qty
