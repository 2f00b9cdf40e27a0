"""TidyService — batch reconciliation, enrichment, and rewrite of content files.

Control flow per file (one asyncio task each, bounded by
``enrichment.max_concurrency``):

    read -> extract -> reconcile -> citations -> enrich -> serialize -> write -> report

Each task owns a private copy of its file's frontmatter.  Reconciliation
always precedes enrichment, and the single write is the only externally
visible mutation.  Errors are isolated per file: a failing file is
recorded and the batch continues; the aggregate result is ``ok=False``
when any file failed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mdtidy.config.logging import file_context
from mdtidy.domain.frontmatter import (
    body_offset,
    extract,
    has_unclosed_block,
    replace_block,
    serialize,
)
from mdtidy.infrastructure.filesystem import read_text_async, write_report, write_text_async
from mdtidy.services._helpers import today_iso
from mdtidy.services.base import BaseService
from mdtidy.services.citations import CitationProcessor, CitationRegistry, CitationRegistryError
from mdtidy.services.enrich import EnrichmentCoordinator, EnrichmentPolicy
from mdtidy.services.reconcile import ReconcileResult, ReconciliationEngine
from mdtidy.services.report import (
    ChangeReporter,
    CitationsUpdated,
    Conversion,
    EnrichmentOutcome,
    FieldAdded,
    FileFailed,
    Processed,
    ValidationIssue,
)
from mdtidy.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from mdtidy.infrastructure.workspace import Workspace

logger = logging.getLogger(__name__)


class UnclosedFrontmatterError(ValueError):
    """The file opens a frontmatter block that never closes."""


@dataclass
class FileOutcome:
    """What happened to one file during a batch run."""

    path: Path
    template: str | None = None
    changed: bool = False
    written: bool = False
    added: list[str] = field(default_factory=list)
    issues: list[dict[str, str]] = field(default_factory=list)
    missing_fields: list[str] = field(default_factory=list)
    extra_fields: list[str] = field(default_factory=list)
    conversions: list[str] = field(default_factory=list)
    enrichment: dict[str, str] = field(default_factory=dict)
    citations: dict[str, Any] = field(default_factory=dict)
    skipped: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "path": str(self.path),
            "template": self.template,
            "changed": self.changed,
            "written": self.written,
            "added": self.added,
            "issues": self.issues,
            "missing_fields": self.missing_fields,
            "extra_fields": self.extra_fields,
        }
        if self.conversions:
            data["conversions"] = self.conversions
        if self.enrichment:
            data["enrichment"] = self.enrichment
        if self.citations:
            data["citations"] = self.citations
        if self.skipped:
            data["skipped"] = self.skipped
        if self.error:
            data["error"] = self.error
        return data


def apply_delta(
    fresh: Mapping[str, Any], original: Mapping[str, Any], final: Mapping[str, Any]
) -> dict[str, Any]:
    """Replay this task's edits (*original* -> *final*) on top of *fresh*.

    Used when the file changed on disk while the task was fetching, so
    concurrent unrelated edits survive the write.
    """
    merged = dict(fresh)
    for key in original:
        if key not in final:
            merged.pop(key, None)
    for key, value in final.items():
        if key not in original or original[key] != value:
            merged[key] = value
    return merged


def _citation_rewriter(citations: CitationProcessor, file: str) -> Callable[[str], str]:
    """Body rewrite applied at write time, recording citations in the registry."""

    def rewrite(body: str) -> str:
        return citations.process(body, file).body

    return rewrite


class TidyService(BaseService):
    """Check or fix every file governed by a configured directory.

    Args:
        workspace: Project workspace.
        engine: Reconciliation engine; the default derives titles from
            file names.
        coordinator: Enrichment coordinator; built from settings (and
            closed again) per run when not injected.
        reporter: Change reporter; a fresh one linked to the content root
            by default.
        citations: Citation processor; loaded from the project registry
            per run when not injected and any directory enables citations.
        today: Clock for ``date_modified`` bumps after a body rewrite.
    """

    def __init__(
        self,
        workspace: Workspace,
        *,
        engine: ReconciliationEngine | None = None,
        coordinator: EnrichmentCoordinator | None = None,
        reporter: ChangeReporter | None = None,
        citations: CitationProcessor | None = None,
        today: Callable[[], str] = today_iso,
    ) -> None:
        super().__init__(workspace)
        self._engine = engine or ReconciliationEngine()
        self._coordinator = coordinator
        self._citations = citations
        self._today = today
        self.reporter = reporter or ChangeReporter(
            link_root=workspace.content_root, project_root=workspace.root
        )

    # ── Public API ────────────────────────────────────────────────────

    def check(self, paths: Iterable[Path] | None = None) -> ServiceResult:
        """Report-only pass: inspect every file, write nothing, fetch nothing."""
        try:
            citations = self._citation_processor()
        except CitationRegistryError as exc:
            return self._registry_failure("check", exc)
        outcomes = asyncio.run(self.run(paths, dry=True, enrich=False, citations=citations))
        self.reporter.reset()
        return self._result("check", outcomes)

    def fix(
        self,
        paths: Iterable[Path] | None = None,
        *,
        enrich: bool = True,
        report: bool = True,
    ) -> ServiceResult:
        """Patch, enrich, and rewrite files; write the batch report."""
        try:
            citations = self._citation_processor()
        except CitationRegistryError as exc:
            return self._registry_failure("fix", exc)
        outcomes = asyncio.run(self.run(paths, dry=False, enrich=enrich, citations=citations))
        if citations is not None and citations.registry.dirty:
            citations.registry.save()

        report_path: Path | None = None
        if report and self._workspace.settings.report.enabled:
            text = self.reporter.render()
            if text is not None:
                report_path = write_report(text, self._workspace.reports_path)
        self.reporter.reset()
        return self._result("fix", outcomes, report_path=report_path)

    async def run(
        self,
        paths: Iterable[Path] | None = None,
        *,
        dry: bool,
        enrich: bool,
        citations: CitationProcessor | None = None,
    ) -> list[FileOutcome]:
        files = self._workspace.discover(paths)
        if dry or not enrich:
            return await self._run_files(files, dry=dry, coordinator=None, citations=citations)
        if self._coordinator is not None:
            return await self._run_files(
                files, dry=dry, coordinator=self._coordinator, citations=citations
            )

        wants_enrichment = any(d.open_graph for d in self._workspace.settings.directories)
        client = self._workspace.open_graph_client() if wants_enrichment else None
        if client is None:
            return await self._run_files(files, dry=dry, coordinator=None, citations=citations)
        async with client:
            coordinator = EnrichmentCoordinator(
                client,
                client,
                policy=EnrichmentPolicy.from_config(self._workspace.settings.enrichment),
            )
            return await self._run_files(
                files, dry=dry, coordinator=coordinator, citations=citations
            )

    def _citation_processor(self) -> CitationProcessor | None:
        if self._citations is not None:
            return self._citations
        settings = self._workspace.settings
        if not any(d.citations for d in settings.directories):
            return None
        registry = CitationRegistry.load(self._workspace.citation_registry_path)
        return CitationProcessor(registry, config=settings.citations)

    # ── Per-file processing ───────────────────────────────────────────

    async def _run_files(
        self,
        files: list[Path],
        *,
        dry: bool,
        coordinator: EnrichmentCoordinator | None,
        citations: CitationProcessor | None,
    ) -> list[FileOutcome]:
        semaphore = asyncio.Semaphore(self._workspace.settings.enrichment.max_concurrency)

        async def guarded(path: Path) -> FileOutcome:
            async with semaphore:
                return await self._process(
                    path, dry=dry, coordinator=coordinator, citations=citations
                )

        return list(await asyncio.gather(*(guarded(p) for p in files)))

    async def _process(
        self,
        path: Path,
        *,
        dry: bool,
        coordinator: EnrichmentCoordinator | None,
        citations: CitationProcessor | None,
    ) -> FileOutcome:
        with file_context(path):
            try:
                return await self._process_file(
                    path, dry=dry, coordinator=coordinator, citations=citations
                )
            except Exception as exc:
                logger.error("Failed to process %s: %s", path, exc, exc_info=True)
                self.reporter.record(FileFailed(file=str(path), reason=str(exc)))
                return FileOutcome(path=path, error=str(exc))

    async def _process_file(
        self,
        path: Path,
        *,
        dry: bool,
        coordinator: EnrichmentCoordinator | None,
        citations: CitationProcessor | None,
    ) -> FileOutcome:
        directory = self._workspace.directory_for(path)
        if directory is None:
            logger.info("No template configured for %s", path)
            return FileOutcome(path=path, skipped="no template configured")

        template = self._workspace.template_for(directory)
        text = await read_text_async(path)
        if has_unclosed_block(text):
            msg = "frontmatter block is never closed"
            raise UnclosedFrontmatterError(msg)

        original = extract(text) or {}
        result = self._engine.reconcile(
            original,
            template,
            path,
            auto_patch=directory.auto_patch and not dry,
            convert_kebab_keys=directory.convert_kebab_keys and not dry,
            skip_patch=() if directory.add_site_uuid else ("site_uuid",),
        )
        outcome = FileOutcome(
            path=path,
            template=template.id,
            added=[name for name, _ in result.added],
            issues=result.report.to_dict()["issues"],
            missing_fields=list(result.report.missing_fields),
            extra_fields=list(result.report.extra_fields),
            conversions=[f"{src} -> {dst}" for src, dst in result.conversions],
        )
        self._record(path, result)

        final = result.patched
        changed = result.changed
        rewrite_body: Callable[[str], str] | None = None
        if citations is not None and directory.citations:
            cited = citations.process(text[body_offset(text) :], str(path), record=False)
            if cited.changed:
                outcome.citations = cited.to_dict()
                self.reporter.record(CitationsUpdated(file=str(path), **cited.to_dict()))
                if "date_modified" in final or "date_modified" in template.field_names:
                    final = {**final, "date_modified": self._today()}
                changed = True
                rewrite_body = _citation_rewriter(citations, str(path))

        if coordinator is not None and directory.open_graph:
            enriched = await coordinator.process(final, path)
            for group_outcome in enriched.outcomes:
                outcome.enrichment[str(group_outcome.group)] = group_outcome.outcome
                self.reporter.record(
                    EnrichmentOutcome(
                        file=str(path),
                        group=str(group_outcome.group),
                        outcome=group_outcome.outcome,
                        detail=group_outcome.detail,
                    )
                )
            final = enriched.updated
            changed = changed or enriched.changed

        outcome.changed = changed
        if changed and not dry:
            order = template.field_order if directory.reorder_to_template else None
            await self._write(
                path, text, original, final, order, template.date_fields, rewrite_body
            )
            outcome.written = True
        return outcome

    def _record(self, path: Path, result: ReconcileResult) -> None:
        file = str(path)
        self.reporter.record(Processed(file=file))
        for issue in result.report.issues:
            self.reporter.record(
                ValidationIssue(
                    file=file, field=issue.field, status=str(issue.status), message=issue.message
                )
            )
        for name, value in result.added:
            self.reporter.record(FieldAdded(file=file, field=name, value=value))
        for src, dst in result.conversions:
            self.reporter.record(Conversion(file=file, from_key=src, to_key=dst))

    async def _write(
        self,
        path: Path,
        text: str,
        original: Mapping[str, Any],
        final: Mapping[str, Any],
        order: Iterable[str] | None,
        date_fields: Iterable[str],
        rewrite_body: Callable[[str], str] | None = None,
    ) -> None:
        current = await read_text_async(path)
        if current != text:
            if has_unclosed_block(current):
                msg = "frontmatter block is never closed"
                raise UnclosedFrontmatterError(msg)
            logger.info("%s changed on disk during processing; merging", path)
            final = apply_delta(extract(current) or {}, original, final)
            text = current

        rendered = serialize(final, order, date_fields=date_fields)
        new_text = replace_block(text, rendered)
        if rewrite_body is not None:
            offset = body_offset(new_text)
            new_text = new_text[:offset] + rewrite_body(new_text[offset:])
        await write_text_async(path, new_text)

    # ── Aggregation ───────────────────────────────────────────────────

    def _result(
        self, op: str, outcomes: list[FileOutcome], *, report_path: Path | None = None
    ) -> ServiceResult:
        failed = [o for o in outcomes if o.error]
        data: dict[str, Any] = {
            "count": sum(1 for o in outcomes if not o.skipped and not o.error),
            "changed": sum(1 for o in outcomes if o.changed),
            "written": sum(1 for o in outcomes if o.written),
            "issue_count": sum(len(o.issues) for o in outcomes),
            "failed": len(failed),
            "files": [o.to_dict() for o in outcomes],
        }
        if report_path is not None:
            data["report_path"] = str(report_path)

        warnings = [f"{o.path}: {o.skipped}" for o in outcomes if o.skipped]
        if not failed:
            return ServiceResult(ok=True, op=op, data=data, warnings=warnings)
        return ServiceResult(
            ok=False,
            op=op,
            data=data,
            warnings=warnings,
            error=ServiceError(
                code="FILE_ERRORS",
                message=f"{len(failed)} file(s) failed",
                detail={"files": {str(o.path): o.error for o in failed}},
            ),
        )

    def _registry_failure(self, op: str, exc: CitationRegistryError) -> ServiceResult:
        logger.error("Citation registry unusable: %s", exc)
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(
                code="CITATION_REGISTRY",
                message=str(exc),
                detail={"path": str(self._workspace.citation_registry_path)},
            ),
        )
