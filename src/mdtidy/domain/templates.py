"""Template model — declarative field schemas per content category.

A :class:`Template` lists the required and optional frontmatter fields of
one content category.  Each :class:`TemplateField` carries a pure
inspector that classifies a value, plus optional default generation used
by the reconciliation engine when a required field is missing or empty.

Inspectors receive :data:`MISSING` for absent keys so that "absent" and
"present but null" stay distinguishable.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from mdtidy.domain.frontmatter import coerce_date
from mdtidy.domain.types import FieldKind, FieldStatus, FieldType


class _Missing:
    """Sentinel type for an absent frontmatter key."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


@dataclass(frozen=True)
class Inspection:
    """Classification of one value by a field inspector."""

    status: FieldStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == FieldStatus.OK


Inspector = Callable[[Any], Inspection]
DefaultFactory = Callable[[Path, Mapping[str, Any]], Any]


# ---------------------------------------------------------------------------
# Inspector factories
# ---------------------------------------------------------------------------


def required_string(name: str, *, allow_empty: bool = False) -> Inspector:
    """Present, a string, and (unless *allow_empty*) not blank."""

    def inspect(value: Any) -> Inspection:
        if value is MISSING:
            return Inspection(FieldStatus.MISSING, f"{name} is missing")
        if not isinstance(value, str):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a string")
        if not allow_empty and not value.strip():
            return Inspection(FieldStatus.EMPTY, f"{name} is empty")
        return Inspection(FieldStatus.OK, f"{name} is present")

    return inspect


def optional_string(name: str) -> Inspector:
    def inspect(value: Any) -> Inspection:
        if value is MISSING or value is None:
            return Inspection(FieldStatus.OK, f"{name} is not present (optional)")
        if not isinstance(value, str):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a string")
        return Inspection(FieldStatus.OK, f"{name} is present and valid type")

    return inspect


def url(name: str, *, allow_empty: bool = False) -> Inspector:
    """An ``http(s)`` URL; blank is acceptable only with *allow_empty*."""

    def inspect(value: Any) -> Inspection:
        if value is MISSING:
            if allow_empty:
                return Inspection(FieldStatus.OK, f"{name} is missing (optional)")
            return Inspection(FieldStatus.MISSING, f"{name} is missing")
        if not isinstance(value, str):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a string")
        if not value.strip():
            if allow_empty:
                return Inspection(FieldStatus.OK, f"{name} is empty (allowed)")
            return Inspection(FieldStatus.EMPTY, f"{name} is empty")
        if not value.strip().startswith(("http://", "https://")):
            return Inspection(FieldStatus.MALFORMED, f"{name} does not start with http(s)://")
        return Inspection(FieldStatus.OK, f"{name} is a valid URL")

    return inspect


def array(name: str, *, allow_empty: bool = False) -> Inspector:
    def inspect(value: Any) -> Inspection:
        if value is MISSING:
            return Inspection(FieldStatus.MISSING, f"{name} is missing")
        if not isinstance(value, list):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not an array")
        if not allow_empty:
            if not value:
                return Inspection(FieldStatus.EMPTY, f"{name} is an empty array")
            if len(value) == 1 and isinstance(value[0], str) and not value[0].strip():
                return Inspection(FieldStatus.EMPTY, f"{name} contains only an empty string")
        return Inspection(FieldStatus.OK, f"{name} is a valid array")

    return inspect


def date_value(name: str) -> Inspector:
    """A ``YYYY-MM-DD`` (or otherwise parseable) date; ``null`` is accepted."""

    def inspect(value: Any) -> Inspection:
        if value is MISSING:
            return Inspection(FieldStatus.MISSING, f"{name} is missing")
        if value is None:
            return Inspection(FieldStatus.OK, f"{name} is null")
        if not isinstance(value, str):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a date string")
        if not value.strip():
            return Inspection(FieldStatus.EMPTY, f"{name} is empty")
        if coerce_date(value) is None:
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a valid date")
        return Inspection(FieldStatus.OK, f"{name} is present and appears valid")

    return inspect


def boolean(name: str) -> Inspector:
    def inspect(value: Any) -> Inspection:
        if value is MISSING:
            return Inspection(FieldStatus.MISSING, f"{name} is missing")
        if not isinstance(value, bool):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a boolean")
        return Inspection(FieldStatus.OK, f"{name} is a boolean")

    return inspect


def number(name: str) -> Inspector:
    def inspect(value: Any) -> Inspection:
        if value is MISSING:
            return Inspection(FieldStatus.MISSING, f"{name} is missing")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return Inspection(FieldStatus.MALFORMED, f"{name} is not a number")
        return Inspection(FieldStatus.OK, f"{name} is a number")

    return inspect


def matching(name: str, pattern: str) -> Inspector:
    """A non-blank string matching *pattern* in full."""
    compiled = re.compile(pattern)
    base = required_string(name)

    def inspect(value: Any) -> Inspection:
        result = base(value)
        if result.status != FieldStatus.OK:
            return result
        if not compiled.fullmatch(value.strip()):
            return Inspection(FieldStatus.MALFORMED, f"{name} does not match {pattern}")
        return result

    return inspect


_TYPE_INSPECTORS: dict[FieldType, Callable[[str], Inspector]] = {
    FieldType.STRING: required_string,
    FieldType.DATE: date_value,
    FieldType.ARRAY: array,
    FieldType.BOOLEAN: boolean,
    FieldType.NUMBER: number,
}


# ---------------------------------------------------------------------------
# Fields and templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TemplateField:
    """One declared frontmatter field.

    Attributes:
        name: Frontmatter key.
        type: Expected value type; picks the inspector when none is given.
        kind: Required or optional.
        description: Human-readable purpose, shown by ``mdtidy templates``.
        inspector: Pure classifier; defaults to the type's inspector.
        default_factory: ``(file_path, frontmatter) -> value`` used when
            a required field is missing or empty.  May read the filesystem.
        default: Static fallback value when no factory is given or the
            factory fails.
    """

    name: str
    type: FieldType = FieldType.STRING
    kind: FieldKind = FieldKind.REQUIRED
    description: str = ""
    inspector: Inspector | None = None
    default_factory: DefaultFactory | None = None
    default: Any = None

    @property
    def required(self) -> bool:
        return self.kind == FieldKind.REQUIRED

    def inspect(self, value: Any) -> Inspection:
        inspector = self.inspector
        if inspector is None:
            if not self.required and self.type == FieldType.STRING:
                inspector = optional_string(self.name)
            elif not self.required and self.type == FieldType.ARRAY:
                inspector = array(self.name, allow_empty=True)
            else:
                inspector = _TYPE_INSPECTORS[self.type](self.name)
        return inspector(value)


@dataclass(frozen=True)
class Template:
    """Immutable schema for one content category."""

    id: str
    name: str
    description: str = ""
    required: tuple[TemplateField, ...] = ()
    optional: tuple[TemplateField, ...] = ()

    @property
    def fields(self) -> tuple[TemplateField, ...]:
        return self.required + self.optional

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields)

    @property
    def required_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.required)

    @property
    def field_order(self) -> tuple[str, ...]:
        """Declaration order: required fields, then optional fields."""
        return tuple(f.name for f in self.fields)

    @property
    def date_fields(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields if f.type == FieldType.DATE)

    def get_field(self, name: str) -> TemplateField | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

TEMPLATE_REGISTRY: dict[str, Template] = {}


def register_template(template: Template) -> Template:
    """Register *template* under its id.

    Raises:
        ValueError: If a different template is already registered under the id.
    """
    existing = TEMPLATE_REGISTRY.get(template.id)
    if existing is not None and existing is not template:
        msg = f"Template {template.id!r} is already registered"
        raise ValueError(msg)
    TEMPLATE_REGISTRY[template.id] = template
    return template


def get_template(template_id: str) -> Template:
    """Look up a registered template.

    Raises:
        KeyError: If no template is registered under *template_id*.
    """
    _ensure_builtins()
    try:
        return TEMPLATE_REGISTRY[template_id]
    except KeyError:
        msg = f"No template registered for {template_id!r}"
        raise KeyError(msg) from None


def list_templates() -> list[Template]:
    _ensure_builtins()
    return sorted(TEMPLATE_REGISTRY.values(), key=lambda t: t.id)


def _ensure_builtins() -> None:
    # Deferred import: builtin_templates imports this module.
    import mdtidy.domain.builtin_templates  # noqa: F401
