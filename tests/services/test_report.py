"""Tests for ChangeReporter — event log and Markdown report rendering."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from mdtidy.domain.frontmatter import extract
from mdtidy.services.report import (
    ChangeReporter,
    CitationsUpdated,
    Conversion,
    EnrichmentOutcome,
    FieldAdded,
    FileFailed,
    Processed,
    ValidationIssue,
    backlink,
)

NOW = datetime(2024, 6, 1, 12, 30, 45)


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    return tmp_path / "content"


@pytest.fixture
def reporter(tmp_path: Path, content_root: Path) -> ChangeReporter:
    return ChangeReporter(link_root=content_root, project_root=tmp_path)


def _note(content_root: Path) -> str:
    return str(content_root / "essays" / "my-note.md")


class TestBacklink:
    def test_relative_to_link_root(self, content_root: Path) -> None:
        assert backlink(_note(content_root), content_root) == (
            "[[essays/my-note.md|my-note|my note]]"
        )

    def test_outside_link_root_keeps_path(self, content_root: Path) -> None:
        assert backlink("/elsewhere/a-b.md", content_root) == "[[/elsewhere/a-b.md|a-b|a b]]"


class TestEventLog:
    def test_render_none_when_empty(self, reporter: ChangeReporter) -> None:
        assert reporter.render(NOW) is None
        assert not reporter.has_events

    def test_reset_clears(self, reporter: ChangeReporter, content_root: Path) -> None:
        reporter.record(Processed(file=_note(content_root)))
        assert reporter.has_events
        reporter.reset()
        assert reporter.events == ()
        assert reporter.render(NOW) is None

    def test_counts(self, reporter: ChangeReporter) -> None:
        reporter.record(Processed(file="a.md"))
        reporter.record(Processed(file="b.md"))
        reporter.record(EnrichmentOutcome(file="a.md", group="preview", outcome="failed"))
        reporter.record(EnrichmentOutcome(file="b.md", group="preview", outcome="succeeded"))
        assert reporter.counts() == {
            "processed": 2,
            "enrichment": 2,
            "preview_failed": 1,
            "preview_succeeded": 1,
        }

    def test_events_are_immutable(self) -> None:
        event = Processed(file="a.md")
        with pytest.raises(Exception):
            event.file = "b.md"  # type: ignore[misc]


class TestRender:
    def test_report_sections(self, reporter: ChangeReporter, content_root: Path) -> None:
        note = _note(content_root)
        link = "[[essays/my-note.md|my-note|my note]]"
        reporter.record(Processed(file=note))
        reporter.record(
            ValidationIssue(file=note, field="title", status="empty", message="title is empty")
        )
        reporter.record(FieldAdded(file=note, field="title", value="My Note"))
        reporter.record(FieldAdded(file=note, field="tags", value=["A", "B"]))

        text = reporter.render(NOW)
        assert text is not None
        assert text.startswith(
            "---\ntitle: Frontmatter Observer Report\ndate: 2024-06-01\ntime: 12-30-45\n---\n"
        )
        assert extract(text) == {
            "title": "Frontmatter Observer Report",
            "date": "2024-06-01",
            "time": "12-30-45",
        }
        assert "- **Files Processed**: 1" in text
        assert "- **Fields Added**: 2" in text
        assert "### title: title is empty" in text
        assert "### title added with value: My Note" in text
        assert "### tags added with value: [A, B]" in text
        assert link in text
        assert "No property name conversions were performed." in text
        assert "## Failed Files" not in text

    def test_links_deduplicated_per_heading(
        self, reporter: ChangeReporter, content_root: Path
    ) -> None:
        note = _note(content_root)
        reporter.record(Processed(file=note))
        reporter.record(Processed(file=note))
        text = reporter.render(NOW)
        assert text is not None
        assert text.count("[[essays/my-note.md|") == 1

    def test_conversions_enrichment_and_failures(
        self, reporter: ChangeReporter, content_root: Path
    ) -> None:
        note = _note(content_root)
        reporter.record(Conversion(file=note, from_key="date-created", to_key="date_created"))
        reporter.record(EnrichmentOutcome(file=note, group="screenshot", outcome="succeeded"))
        reporter.record(FileFailed(file=note, reason="frontmatter block is never closed"))

        text = reporter.render(NOW)
        assert text is not None
        assert "### `date-created` → `date_created`" in text
        assert "### screenshot succeeded" in text
        assert "  - **Successfully Fetched**: 1" in text
        assert "## Failed Files" in text
        assert "frontmatter block is never closed" in text

    def test_project_override_template(self, tmp_path: Path, reporter: ChangeReporter) -> None:
        override = tmp_path / ".mdtidy" / "templates" / "reports"
        override.mkdir(parents=True)
        (override / "report.md.j2").write_text(
            "custom {{ processed | length }}\n", encoding="utf-8"
        )
        reporter.record(Processed(file="a.md"))
        assert reporter.render(NOW) == "custom 1\n"

    def test_citation_section_and_counts(
        self, reporter: ChangeReporter, content_root: Path
    ) -> None:
        note = _note(content_root)
        reporter.record(Processed(file=note))
        assert "No citations were rewritten." in (reporter.render(NOW) or "")

        reporter.record(
            CitationsUpdated(file=note, converted=2, definitions_added=1, section_added=True)
        )
        counts = reporter.counts()
        assert counts["citations"] == 1
        assert counts["citations_converted"] == 2
        assert counts["citation_definitions_added"] == 1

        text = reporter.render(NOW)
        assert text is not None
        assert "  - **Footnotes Renamed**: 2" in text
        assert "### footnotes renamed to hex ids" in text
        assert "### missing definitions added" in text
        assert "### footnotes section added" in text
        assert "No citations were rewritten." not in text
