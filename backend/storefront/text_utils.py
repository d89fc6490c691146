from __future__ import annotations

from typing import Optional

from slugify import slugify as _transliterated_slug


def normalize_whitespace(value: Optional[str]) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def slugify(value: Optional[str]) -> str:
    """
    URL-safe slug: lowercase, ASCII-transliterated, every run of
    non-alphanumerics collapsed to a single "-", no leading/trailing "-".

    Non-Latin letters are transliterated rather than dropped ("Straße" gives
    "strasse", Arabic names keep a readable Latin form). Pure: the same name
    always yields the same slug. Returns "" when nothing alphanumeric survives.
    """
    return _transliterated_slug(normalize_whitespace(value), lowercase=True)
