"""Change reporter — accumulates batch events and renders a Markdown report.

Components record events through :meth:`ChangeReporter.record` and never
read them back; the accumulated log is only consumed by :meth:`render`.
Each recorded event is also emitted as a structlog event, so ``--verbose``
and ``--log-json`` runs show the same information live.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import BaseModel

from mdtidy.domain.frontmatter import serialize
from mdtidy.infrastructure.templates import build_template_environment

log = structlog.get_logger(__name__)

REPORT_TITLE = "Frontmatter Observer Report"
REPORT_TEMPLATE = "report.md.j2"


class FieldAdded(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["field_added"] = "field_added"
    file: str
    field: str
    value: Any = None


class ValidationIssue(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["validation_issue"] = "validation_issue"
    file: str
    field: str
    status: str
    message: str = ""


class Conversion(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["conversion"] = "conversion"
    file: str
    from_key: str
    to_key: str


class Processed(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["processed"] = "processed"
    file: str


class EnrichmentOutcome(BaseModel):
    """Result of one enrichment group (``preview`` / ``screenshot``) for a file."""

    model_config = {"frozen": True}

    kind: Literal["enrichment"] = "enrichment"
    file: str
    group: str
    outcome: Literal["succeeded", "failed", "skipped"]
    detail: str = ""


class CitationsUpdated(BaseModel):
    """Footnote rewrite applied to one file's body."""

    model_config = {"frozen": True}

    kind: Literal["citations"] = "citations"
    file: str
    converted: int = 0
    definitions_added: int = 0
    section_added: bool = False


class FileFailed(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["file_failed"] = "file_failed"
    file: str
    reason: str


ReportEvent = (
    FieldAdded
    | ValidationIssue
    | Conversion
    | Processed
    | EnrichmentOutcome
    | CitationsUpdated
    | FileFailed
)


def backlink(file: str, link_root: Path | None = None) -> str:
    """Obsidian backlink ``[[rel/path.md|stem|stem with spaces]]``."""
    path = Path(file)
    if link_root is not None:
        try:
            path = path.relative_to(link_root)
        except ValueError:
            pass
    display = path.stem
    return f"[[{path.as_posix()}|{display}|{display.replace('-', ' ')}]]"


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return "[" + ", ".join(str(v) for v in value) + "]"
    if value is None:
        return "null"
    if value == "":
        return '""'
    return str(value)


class ChangeReporter:
    """Collects events for one batch run.

    Args:
        link_root: Backlinks are rendered relative to this directory
            (normally the content root).
        project_root: Enables ``.mdtidy/templates/reports/`` overrides.
    """

    def __init__(
        self, *, link_root: Path | None = None, project_root: Path | None = None
    ) -> None:
        self._events: list[ReportEvent] = []
        self._link_root = link_root
        self._project_root = project_root

    def record(self, event: ReportEvent) -> None:
        self._events.append(event)
        level = "warning" if isinstance(event, FileFailed) else "debug"
        getattr(log, level)(event.kind, **event.model_dump(exclude={"kind"}))

    def reset(self) -> None:
        self._events.clear()

    @property
    def has_events(self) -> bool:
        return bool(self._events)

    @property
    def events(self) -> tuple[ReportEvent, ...]:
        return tuple(self._events)

    def counts(self) -> dict[str, int]:
        """Event totals by kind, plus per-outcome enrichment and citation totals."""
        totals: Counter[str] = Counter(e.kind for e in self._events)
        for e in self._events:
            if isinstance(e, EnrichmentOutcome):
                totals[f"{e.group}_{e.outcome}"] += 1
            elif isinstance(e, CitationsUpdated):
                totals["citations_converted"] += e.converted
                totals["citation_definitions_added"] += e.definitions_added
        return dict(totals)

    # ── Rendering ─────────────────────────────────────────────────────

    def render(self, now: datetime | None = None) -> str | None:
        """Render the batch report, or None when nothing was recorded."""
        if not self._events:
            return None

        now = now or datetime.now().astimezone()
        frontmatter = serialize(
            {
                "title": REPORT_TITLE,
                "date": now.strftime("%Y-%m-%d"),
                "time": now.strftime("%H-%M-%S"),
            }
        )
        env = build_template_environment("reports", project_root=self._project_root)
        return env.get_template(REPORT_TEMPLATE).render(
            title=REPORT_TITLE,
            frontmatter=frontmatter,
            counts=self.counts(),
            **self._sections(),
        )

    def _link(self, file: str) -> str:
        return backlink(file, self._link_root)

    def _sections(self) -> dict[str, Any]:
        processed: list[str] = []
        conversions: dict[str, list[str]] = defaultdict(list)
        issues: dict[str, list[str]] = defaultdict(list)
        added: dict[str, list[str]] = defaultdict(list)
        enrichment: dict[str, list[str]] = defaultdict(list)
        citations: dict[str, list[str]] = defaultdict(list)
        failures: list[tuple[str, str]] = []

        def add_unique(bucket: list[str], link: str) -> None:
            if link not in bucket:
                bucket.append(link)

        for e in self._events:
            link = self._link(e.file)
            match e:
                case Processed():
                    add_unique(processed, link)
                case Conversion():
                    add_unique(conversions[f"`{e.from_key}` → `{e.to_key}`"], link)
                case ValidationIssue():
                    add_unique(issues[f"{e.field}: {e.message or e.status}"], link)
                case FieldAdded():
                    heading = f"{e.field} added with value: {_format_value(e.value)}"
                    add_unique(added[heading], link)
                case EnrichmentOutcome():
                    add_unique(enrichment[f"{e.group} {e.outcome}"], link)
                case CitationsUpdated():
                    if e.converted:
                        add_unique(citations["footnotes renamed to hex ids"], link)
                    if e.definitions_added:
                        add_unique(citations["missing definitions added"], link)
                    if e.section_added:
                        add_unique(citations["footnotes section added"], link)
                case FileFailed():
                    failures.append((link, e.reason))

        return {
            "processed": processed,
            "conversions": dict(conversions),
            "issues": dict(issues),
            "added": dict(added),
            "enrichment": dict(enrichment),
            "citations": dict(citations),
            "failures": failures,
        }
