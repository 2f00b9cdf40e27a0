"""Field classification enums shared by templates, reconciliation, and reports."""

from __future__ import annotations

from enum import StrEnum


class FieldStatus(StrEnum):
    """Outcome of inspecting a single frontmatter value."""

    MISSING = "missing"
    EMPTY = "empty"
    MALFORMED = "malformed"
    OK = "ok"


class FieldKind(StrEnum):
    """Whether a template field must be present."""

    REQUIRED = "required"
    OPTIONAL = "optional"


class FieldType(StrEnum):
    """Expected value type of a template field."""

    STRING = "string"
    DATE = "date"
    ARRAY = "array"
    BOOLEAN = "boolean"
    NUMBER = "number"


class EnrichmentGroup(StrEnum):
    """Independent groups of remotely fetched fields."""

    PREVIEW = "preview"
    SCREENSHOT = "screenshot"
