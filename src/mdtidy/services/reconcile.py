"""Template-driven frontmatter reconciliation.

:class:`ReconciliationEngine` compares a parsed frontmatter document with
the :class:`~mdtidy.domain.templates.Template` of its content category.
``inspect`` is the dry, report-only mode; ``reconcile`` additionally
injects defaults into missing or empty required fields when asked to.

INVARIANT: ``missing_fields`` and ``extra_fields`` always describe the
document as it was read, never the patched result.

INVARIANT: reconciling an already-patched document changes nothing.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any

from mdtidy.domain.defaults import title_from_path
from mdtidy.domain.frontmatter import coerce_date
from mdtidy.domain.templates import MISSING, DefaultFactory, Template, TemplateField
from mdtidy.domain.types import FieldStatus, FieldType
from mdtidy.services._helpers import kebab_to_snake, today_iso

logger = logging.getLogger(__name__)

DEFAULT_OVERRIDES: Mapping[str, DefaultFactory] = {"title": title_from_path}

_PATCHABLE = (FieldStatus.MISSING, FieldStatus.EMPTY)
_FAILED = object()


@dataclass(frozen=True)
class FieldReport:
    field: str
    status: FieldStatus
    message: str
    required: bool = True


@dataclass(frozen=True)
class InspectionReport:
    """Per-field inspection outcome for one document."""

    fields: tuple[FieldReport, ...] = ()
    missing_fields: tuple[str, ...] = ()
    extra_fields: tuple[str, ...] = ()

    @property
    def issues(self) -> tuple[FieldReport, ...]:
        return tuple(r for r in self.fields if r.status != FieldStatus.OK)

    @property
    def ok(self) -> bool:
        return not self.issues and not self.missing_fields

    def status_of(self, name: str) -> FieldStatus | None:
        for report in self.fields:
            if report.field == name:
                return report.status
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "issues": [
                {"field": r.field, "status": str(r.status), "message": r.message}
                for r in self.issues
            ],
            "missing_fields": list(self.missing_fields),
            "extra_fields": list(self.extra_fields),
        }


@dataclass(frozen=True)
class ReconcileResult:
    patched: dict[str, Any]
    changed: bool
    report: InspectionReport
    added: tuple[tuple[str, Any], ...] = ()
    conversions: tuple[tuple[str, str], ...] = ()


def _is_unset(value: Any) -> bool:
    if value is MISSING or value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return not value
    return False


def _unwrap_date(value: Any) -> str | None:
    """Pull a ``YYYY-MM-DD`` out of a date-ish default-factory result.

    Accepts a plain date string or ``date``, ``{"date": ...}``, or the
    handler shape ``{"changes": {"date_created": ...}}``.
    """
    if isinstance(value, (str, date)):
        return coerce_date(value)
    if isinstance(value, Mapping):
        if "date" in value:
            return coerce_date(value["date"])
        changes = value.get("changes")
        if isinstance(changes, Mapping) and "date_created" in changes:
            return coerce_date(changes["date_created"])
    return None


def snake_case_keys(
    frontmatter: Mapping[str, Any],
) -> tuple[dict[str, Any], list[tuple[str, str]]]:
    """Rename ``kebab-case`` keys to ``snake_case`` in place order.

    A key is left alone when its snake_case form already exists.
    """
    converted: dict[str, Any] = {}
    conversions: list[tuple[str, str]] = []
    for key, value in frontmatter.items():
        snake = kebab_to_snake(key)
        if snake is not None and snake not in frontmatter:
            converted[snake] = value
            conversions.append((key, snake))
        else:
            converted[key] = value
    return converted, conversions


class ReconciliationEngine:
    """Inspect and patch frontmatter against templates.

    Args:
        field_overrides: Per-field-name default factories that take
            precedence over a field's own ``default_factory``.  Defaults
            to deriving ``title`` from the file name.
        today: Clock for the date fallback, injectable for tests.
    """

    def __init__(
        self,
        *,
        field_overrides: Mapping[str, DefaultFactory] | None = None,
        today: Callable[[], str] = today_iso,
    ) -> None:
        self._overrides = dict(DEFAULT_OVERRIDES if field_overrides is None else field_overrides)
        self._today = today

    # ── Inspection ────────────────────────────────────────────────────

    def inspect(
        self,
        frontmatter: Mapping[str, Any] | None,
        template: Template,
    ) -> InspectionReport:
        """Classify every required field and every present optional field."""
        fm = frontmatter or {}
        reports = [self._inspect_field(f, fm) for f in template.required]
        reports.extend(self._inspect_field(f, fm) for f in template.optional if f.name in fm)
        known = template.field_names
        return InspectionReport(
            fields=tuple(reports),
            missing_fields=tuple(n for n in template.required_names if n not in fm),
            extra_fields=tuple(k for k in fm if k not in known),
        )

    def _inspect_field(self, tf: TemplateField, fm: Mapping[str, Any]) -> FieldReport:
        value = fm.get(tf.name, MISSING)
        if isinstance(value, list) and not value and tf.type != FieldType.ARRAY:
            # ``key:`` with nothing after it parses as an empty list.
            status = FieldStatus.EMPTY if tf.required else FieldStatus.OK
            return FieldReport(tf.name, status, f"{tf.name} is empty", tf.required)
        if isinstance(value, list) and not value and tf.required:
            return FieldReport(tf.name, FieldStatus.EMPTY, f"{tf.name} is an empty array")
        try:
            result = tf.inspect(value)
        except Exception as exc:
            logger.warning("Inspector for %s raised: %s", tf.name, exc, exc_info=True)
            return FieldReport(
                tf.name, FieldStatus.MALFORMED, f"{tf.name} could not be inspected", tf.required
            )
        return FieldReport(tf.name, result.status, result.message, tf.required)

    # ── Patching ──────────────────────────────────────────────────────

    def reconcile(
        self,
        frontmatter: Mapping[str, Any] | None,
        template: Template,
        file_path: Path,
        *,
        auto_patch: bool,
        convert_kebab_keys: bool = False,
        skip_patch: Collection[str] = (),
    ) -> ReconcileResult:
        """Inspect *frontmatter* and, with *auto_patch*, fill required fields.

        Fields named in *skip_patch* are still inspected and reported but
        never filled.  The input mapping is never mutated; ``patched`` is
        a fresh dict.
        """
        original = dict(frontmatter or {})
        working = copy.deepcopy(original)
        conversions: list[tuple[str, str]] = []
        if convert_kebab_keys:
            working, conversions = snake_case_keys(working)

        current = self.inspect(working, template)
        baseline = self.inspect(original, template)
        report = InspectionReport(
            fields=current.fields,
            missing_fields=baseline.missing_fields,
            extra_fields=baseline.extra_fields,
        )

        added: list[tuple[str, Any]] = []
        patchable = [tf for tf in template.required if tf.name not in skip_patch]
        if auto_patch:
            for tf in patchable:
                if current.status_of(tf.name) in _PATCHABLE:
                    self._apply(working, tf, self._default_for(tf, file_path, working), added)

            # Second pass: a default that came back empty, or a required
            # value that was null to begin with.
            for tf in patchable:
                value = working.get(tf.name, MISSING)
                if _is_unset(value) and self._inspect_field(tf, working).status != FieldStatus.OK:
                    self._apply(working, tf, self._default_for(tf, file_path, working), added)

        return ReconcileResult(
            patched=working,
            changed=working != original,
            report=report,
            added=tuple(added),
            conversions=tuple(conversions),
        )

    @staticmethod
    def _apply(
        working: dict[str, Any], tf: TemplateField, value: Any, added: list[tuple[str, Any]]
    ) -> None:
        if working.get(tf.name, MISSING) == value:
            return
        working[tf.name] = value
        added.append((tf.name, value))

    def _default_for(self, tf: TemplateField, file_path: Path, fm: Mapping[str, Any]) -> Any:
        """Resolve a replacement: override, factory, static default, type default."""
        override = self._overrides.get(tf.name)
        if override is not None:
            value = self._call(override, tf, file_path, fm)
            if value is not _FAILED and not _is_unset(value):
                return self._normalise(tf, value)

        if tf.default_factory is not None:
            value = self._call(tf.default_factory, tf, file_path, fm)
            if tf.type == FieldType.DATE:
                return _unwrap_date(value) or self._today()
            if value is not _FAILED and not _is_unset(value):
                return self._normalise(tf, value)

        if tf.default is not None:
            return self._normalise(tf, tf.default)
        return self._type_default(tf)

    @staticmethod
    def _call(
        factory: DefaultFactory, tf: TemplateField, file_path: Path, fm: Mapping[str, Any]
    ) -> Any:
        try:
            return factory(file_path, fm)
        except Exception as exc:
            logger.warning(
                "Default generation for %s failed on %s: %s",
                tf.name,
                file_path,
                exc,
                exc_info=True,
            )
            return _FAILED

    def _normalise(self, tf: TemplateField, value: Any) -> Any:
        if tf.type == FieldType.DATE:
            return _unwrap_date(value) or self._today()
        if tf.type == FieldType.ARRAY:
            if isinstance(value, (list, tuple)):
                return [str(v) for v in value]
            return [str(value)]
        return copy.deepcopy(value)

    def _type_default(self, tf: TemplateField) -> Any:
        if tf.type == FieldType.STRING:
            return ""
        if tf.type == FieldType.ARRAY:
            return []
        if tf.type == FieldType.DATE:
            return self._today()
        return None
