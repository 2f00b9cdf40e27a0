"""Shared service-layer helper functions."""

from __future__ import annotations

import re
from datetime import UTC, datetime

_KEBAB_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)+$")


def today_iso() -> str:
    """Today's date as YYYY-MM-DD."""
    return datetime.now(UTC).strftime("%Y-%m-%d")


def now_iso() -> str:
    """Current UTC time as ISO 8601 (``og_last_fetch`` stamps)."""
    return datetime.now(UTC).isoformat(timespec="seconds")


def kebab_to_snake(key: str) -> str | None:
    """Return the snake_case form of a kebab-case key, or None if *key* isn't kebab.

    Examples:
        >>> kebab_to_snake("date-created")
        'date_created'
        >>> kebab_to_snake("title") is None
        True
    """
    if not _KEBAB_RE.match(key):
        return None
    return key.replace("-", "_")
