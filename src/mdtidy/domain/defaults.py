"""Default-value generators used by the built-in templates.

All generators follow the ``(file_path, frontmatter) -> value`` factory
signature (directly, or through a small factory function) and never
modify the filesystem.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime
from pathlib import Path, PurePosixPath
from typing import Any

_WORD_SPLIT_RE = re.compile(r"[-_\s]+")

UNCATEGORIZED = "Uncategorized"


def today() -> str:
    """Current calendar date as ``YYYY-MM-DD``."""
    return datetime.now(UTC).strftime("%Y-%m-%d")


def site_uuid(_file_path: Path, _frontmatter: Mapping[str, Any]) -> str:
    return str(uuid.uuid4())


def current_date(_file_path: Path, _frontmatter: Mapping[str, Any]) -> str:
    return today()


def file_creation_date(file_path: Path) -> str:
    """Birth time of *file_path* where the platform records it, else mtime."""
    st = Path(file_path).stat()
    timestamp = getattr(st, "st_birthtime", None) or st.st_mtime
    return date.fromtimestamp(timestamp).isoformat()


def date_created(file_path: Path, _frontmatter: Mapping[str, Any]) -> dict[str, Any]:
    """Handler-style result: ``{"changes": {"date_created": "YYYY-MM-DD"}}``.

    Falls back to today when the file cannot be stat'ed.
    """
    try:
        created = file_creation_date(file_path)
    except OSError:
        created = today()
    return {"changes": {"date_created": created}}


def title_from_path(file_path: Path, _frontmatter: Mapping[str, Any] | None = None) -> str:
    """``my-note.md`` -> ``My Note``."""
    words = [w for w in _WORD_SPLIT_RE.split(Path(file_path).stem) if w]
    return " ".join(w[0].upper() + w[1:] for w in words)


def train_case(text: str) -> str:
    """``enterprise jobs_to-be`` -> ``Enterprise-Jobs-To-Be``."""
    words = [w for w in _WORD_SPLIT_RE.split(text) if w]
    return "-".join(w[0].upper() + w[1:] for w in words)


def tags_from_path(anchor: str) -> Callable[[Path, Mapping[str, Any]], list[str]]:
    """Build a factory deriving tags from the directories below *anchor*.

    ``content/tooling/AI Tools/Agents/x.md`` with anchor ``tooling`` gives
    ``["AI-Tools", "Agents"]``.  Files directly inside the anchor, or
    outside it, are tagged ``Uncategorized``.
    """
    anchor_parts = PurePosixPath(anchor).parts

    def factory(file_path: Path, _frontmatter: Mapping[str, Any]) -> list[str]:
        parts = PurePosixPath(str(file_path).replace("\\", "/")).parts[:-1]
        size = len(anchor_parts)
        for start in range(len(parts) - size + 1):
            if parts[start : start + size] == anchor_parts:
                below = parts[start + size :]
                tags = [train_case(p) for p in below if train_case(p)]
                return tags or [UNCATEGORIZED]
        return [UNCATEGORIZED]

    return factory


def fixed_tags(*tags: str) -> Callable[[Path, Mapping[str, Any]], list[str]]:
    """Factory returning a fresh copy of *tags* for every file."""

    def factory(_file_path: Path, _frontmatter: Mapping[str, Any]) -> list[str]:
        return list(tags)

    return factory
