"""Tests for default-value generators."""

from __future__ import annotations

import os
import re
import uuid
from datetime import date, datetime
from pathlib import Path

from mdtidy.domain import defaults


class TestTitleFromPath:
    def test_kebab_name(self) -> None:
        assert defaults.title_from_path(Path("content/essays/my-note.md")) == "My Note"

    def test_mixed_separators(self) -> None:
        assert defaults.title_from_path(Path("on_writing well.md")) == "On Writing Well"

    def test_keeps_inner_capitals(self) -> None:
        assert defaults.title_from_path(Path("openAI-tools.md")) == "OpenAI Tools"


class TestTagsFromPath:
    def test_directories_below_anchor(self) -> None:
        factory = defaults.tags_from_path("tooling")
        path = Path("content/tooling/AI Tools/agent_frameworks/x.md")
        assert factory(path, {}) == ["AI-Tools", "Agent-Frameworks"]

    def test_directly_in_anchor_is_uncategorized(self) -> None:
        factory = defaults.tags_from_path("tooling")
        assert factory(Path("content/tooling/x.md"), {}) == [defaults.UNCATEGORIZED]

    def test_outside_anchor_is_uncategorized(self) -> None:
        factory = defaults.tags_from_path("prompts")
        assert factory(Path("content/essays/x.md"), {}) == ["Uncategorized"]


class TestDates:
    def test_today_format(self) -> None:
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", defaults.today())

    def test_date_created_uses_file_times(self, tmp_path: Path) -> None:
        note = tmp_path / "note.md"
        note.write_text("x", encoding="utf-8")
        stamp = datetime(2021, 6, 15, 12, 0).timestamp()
        os.utime(note, (stamp, stamp))

        result = defaults.date_created(note, {})
        created = result["changes"]["date_created"]
        birth = getattr(note.stat(), "st_birthtime", None)
        expected = date.fromtimestamp(birth or stamp).isoformat()
        assert created == expected

    def test_date_created_missing_file_falls_back_to_today(self, tmp_path: Path) -> None:
        result = defaults.date_created(tmp_path / "gone.md", {})
        assert result == {"changes": {"date_created": defaults.today()}}


def test_site_uuid_is_uuid4() -> None:
    value = defaults.site_uuid(Path("x.md"), {})
    assert uuid.UUID(value).version == 4


def test_train_case() -> None:
    assert defaults.train_case("enterprise jobs_to-be") == "Enterprise-Jobs-To-Be"
