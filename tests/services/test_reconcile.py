"""Tests for ReconciliationEngine — inspection and default patching."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from mdtidy.domain.frontmatter import extract, replace_block, serialize
from mdtidy.domain.templates import Inspection, Template, TemplateField, get_template
from mdtidy.domain.types import FieldKind, FieldStatus, FieldType
from mdtidy.services.reconcile import ReconciliationEngine, snake_case_keys

FIXED_DAY = "2020-01-01"


def _boom(*_args: Any) -> Any:
    raise RuntimeError("boom")


@pytest.fixture
def engine() -> ReconciliationEngine:
    return ReconciliationEngine(today=lambda: FIXED_DAY)


@pytest.fixture
def ab_template() -> Template:
    return Template(
        id="ab",
        name="AB",
        required=(TemplateField("A", default="a-default"), TemplateField("B", default="b")),
        optional=(TemplateField("C", kind=FieldKind.OPTIONAL),),
    )


class TestInspect:
    def test_missing_field_detection(self, engine: ReconciliationEngine, ab_template) -> None:
        report = engine.inspect({"A": "x"}, ab_template)
        assert report.status_of("A") == FieldStatus.OK
        assert report.status_of("B") == FieldStatus.MISSING
        assert report.missing_fields == ("B",)
        assert not report.ok

    def test_empty_is_not_missing(self, engine: ReconciliationEngine, ab_template) -> None:
        report = engine.inspect({"A": "", "B": "y"}, ab_template)
        assert report.status_of("A") == FieldStatus.EMPTY
        assert report.missing_fields == ()

    def test_extra_fields(self, engine: ReconciliationEngine, ab_template) -> None:
        report = engine.inspect({"A": "x", "B": "y", "zzz": 1, "C": "c"}, ab_template)
        assert report.extra_fields == ("zzz",)
        assert report.ok

    def test_absent_optional_not_reported(self, engine: ReconciliationEngine, ab_template) -> None:
        report = engine.inspect({"A": "x", "B": "y"}, ab_template)
        assert report.status_of("C") is None

    def test_none_frontmatter(self, engine: ReconciliationEngine, ab_template) -> None:
        report = engine.inspect(None, ab_template)
        assert report.missing_fields == ("A", "B")

    def test_empty_list_on_string_field_is_empty(
        self, engine: ReconciliationEngine, ab_template
    ) -> None:
        report = engine.inspect({"A": [], "B": "y", "C": []}, ab_template)
        assert report.status_of("A") == FieldStatus.EMPTY
        assert report.status_of("C") == FieldStatus.OK

    def test_empty_required_array_reported_empty(self, engine: ReconciliationEngine) -> None:
        template = Template(id="t", name="T", required=(TemplateField("tags", FieldType.ARRAY),))
        report = engine.inspect({"tags": []}, template)
        assert report.status_of("tags") == FieldStatus.EMPTY
        assert report.missing_fields == ()

    def test_raising_inspector_is_malformed(self, engine: ReconciliationEngine) -> None:
        template = Template(id="t", name="T", required=(TemplateField("x", inspector=_boom),))
        report = engine.inspect({"x": "value"}, template)
        assert report.status_of("x") == FieldStatus.MALFORMED

    def test_to_dict(self, engine: ReconciliationEngine, ab_template) -> None:
        data = engine.inspect({"A": ""}, ab_template).to_dict()
        assert data["missing_fields"] == ["B"]
        assert {"field": "A", "status": "empty", "message": "A is empty"} in data["issues"]


class TestReconcile:
    def test_title_from_file_name(self, engine: ReconciliationEngine) -> None:
        template = Template(id="t", name="T", required=(TemplateField("title"),))
        text = "---\ntitle: \n---\nBody text"
        result = engine.reconcile(
            extract(text), template, Path("content/essays/my-note.md"), auto_patch=True
        )
        assert result.patched == {"title": "My Note"}
        assert result.changed
        rewritten = replace_block(text, serialize(result.patched))
        assert rewritten == "---\ntitle: My Note\n---\nBody text"

    def test_empty_replaced_with_default(self, engine: ReconciliationEngine, ab_template) -> None:
        result = engine.reconcile({"A": "", "B": "y"}, ab_template, Path("x.md"), auto_patch=True)
        assert result.patched["A"] == "a-default"
        assert result.changed
        assert result.added == (("A", "a-default"),)

    def test_no_auto_patch_changes_nothing(self, engine: ReconciliationEngine, ab_template) -> None:
        result = engine.reconcile({"A": ""}, ab_template, Path("x.md"), auto_patch=False)
        assert result.patched == {"A": ""}
        assert not result.changed
        assert result.report.missing_fields == ("B",)

    def test_input_not_mutated(self, engine: ReconciliationEngine, ab_template) -> None:
        original = {"A": ""}
        engine.reconcile(original, ab_template, Path("x.md"), auto_patch=True)
        assert original == {"A": ""}

    def test_missing_fields_reflect_original(
        self, engine: ReconciliationEngine, ab_template
    ) -> None:
        result = engine.reconcile({}, ab_template, Path("x.md"), auto_patch=True)
        assert result.patched == {"A": "a-default", "B": "b"}
        assert result.report.missing_fields == ("A", "B")

    def test_skip_patch_reports_but_never_fills(
        self, engine: ReconciliationEngine, ab_template
    ) -> None:
        result = engine.reconcile(
            {"B": ""}, ab_template, Path("x.md"), auto_patch=True, skip_patch=("A",)
        )
        assert result.patched == {"B": "b"}
        assert result.report.missing_fields == ("A",)
        assert result.report.status_of("A") == FieldStatus.MISSING

    def test_optional_fields_not_patched(self, engine: ReconciliationEngine, ab_template) -> None:
        result = engine.reconcile({"A": "x", "B": "y"}, ab_template, Path("x.md"), auto_patch=True)
        assert "C" not in result.patched
        assert not result.changed

    def test_raising_factory_falls_back(self, engine: ReconciliationEngine) -> None:
        template = Template(
            id="t",
            name="T",
            required=(
                TemplateField("s", default_factory=_boom, default="static"),
                TemplateField("tags", FieldType.ARRAY, default_factory=_boom),
                TemplateField("n", FieldType.NUMBER, default_factory=_boom),
            ),
        )
        result = engine.reconcile({}, template, Path("x.md"), auto_patch=True)
        assert result.patched == {"s": "static", "tags": [], "n": None}

    @pytest.mark.parametrize(
        ("returned", "expected"),
        [
            ({"date": "2024-01-02"}, "2024-01-02"),
            ({"changes": {"date_created": "2023-05-06"}}, "2023-05-06"),
            ("2022-07-08T00:00:00Z", "2022-07-08"),
            ({"unexpected": True}, FIXED_DAY),
            (None, FIXED_DAY),
        ],
    )
    def test_date_factory_unwrapping(
        self, engine: ReconciliationEngine, returned: Any, expected: str
    ) -> None:
        template = Template(
            id="t",
            name="T",
            required=(
                TemplateField("date_x", FieldType.DATE, default_factory=lambda _p, _fm: returned),
            ),
        )
        result = engine.reconcile({}, template, Path("x.md"), auto_patch=True)
        assert result.patched == {"date_x": expected}

    def test_failing_date_factory_uses_today(self, engine: ReconciliationEngine) -> None:
        template = Template(
            id="t", name="T", required=(TemplateField("d", FieldType.DATE, default_factory=_boom),)
        )
        assert engine.reconcile({}, template, Path("x.md"), auto_patch=True).patched == {
            "d": FIXED_DAY
        }

    def test_null_required_value_patched_in_second_pass(
        self, engine: ReconciliationEngine, ab_template
    ) -> None:
        result = engine.reconcile({"A": None, "B": "y"}, ab_template, Path("x.md"), auto_patch=True)
        assert result.report.status_of("A") == FieldStatus.MALFORMED
        assert result.patched["A"] == "a-default"

    def test_override_beats_factory(self) -> None:
        engine = ReconciliationEngine(field_overrides={"x": lambda _p, _fm: "override"})
        template = Template(
            id="t",
            name="T",
            required=(TemplateField("x", default_factory=lambda _p, _fm: "factory"),),
        )
        assert engine.reconcile({}, template, Path("a.md"), auto_patch=True).patched == {
            "x": "override"
        }

    def test_empty_override_falls_through(self) -> None:
        engine = ReconciliationEngine(field_overrides={"x": lambda _p, _fm: ""})
        template = Template(id="t", name="T", required=(TemplateField("x", default="static"),))
        assert engine.reconcile({}, template, Path("a.md"), auto_patch=True).patched == {
            "x": "static"
        }

    def test_custom_inspector_result_used(self, engine: ReconciliationEngine) -> None:
        template = Template(
            id="t",
            name="T",
            required=(
                TemplateField(
                    "x",
                    inspector=lambda v: Inspection(FieldStatus.EMPTY, "never ok"),
                    default="d",
                ),
            ),
        )
        result = engine.reconcile({"x": "d"}, template, Path("a.md"), auto_patch=True)
        assert not result.changed


class TestIdempotence:
    @pytest.mark.parametrize(
        "template_id",
        [
            "tooling",
            "essays",
            "prompts",
            "concepts",
            "specifications",
            "issue-resolution",
            "reminders",
        ],
    )
    def test_second_pass_changes_nothing(
        self, engine: ReconciliationEngine, tmp_path: Path, template_id: str
    ) -> None:
        note = tmp_path / "specs" / "some-file.md"
        note.parent.mkdir()
        note.write_text("---\nlede: \n---\nBody", encoding="utf-8")
        template = get_template(template_id)

        first = engine.reconcile(extract(note.read_text()), template, note, auto_patch=True)
        second = engine.reconcile(first.patched, template, note, auto_patch=True)
        assert first.changed
        assert not second.changed
        assert second.patched == first.patched

    def test_serialized_round_trip_is_stable(
        self, engine: ReconciliationEngine, tmp_path: Path
    ) -> None:
        note = tmp_path / "tooling" / "Agents" / "cool-tool.md"
        note.parent.mkdir(parents=True)
        note.write_text("---\nurl: https://example.com\ntags: [a]\n---\n", encoding="utf-8")
        template = get_template("tooling")

        first = engine.reconcile(extract(note.read_text()), template, note, auto_patch=True)
        reread = extract(f"---\n{serialize(first.patched, date_fields=template.date_fields)}---\n")
        second = engine.reconcile(reread, template, note, auto_patch=True)
        assert not second.changed


class TestKebabConversion:
    def test_snake_case_keys(self) -> None:
        converted, conversions = snake_case_keys({"date-created": "2024-01-01", "title": "T"})
        assert converted == {"date_created": "2024-01-01", "title": "T"}
        assert list(converted) == ["date_created", "title"]
        assert conversions == [("date-created", "date_created")]

    def test_existing_snake_key_wins(self) -> None:
        converted, conversions = snake_case_keys({"site-name": "a", "site_name": "b"})
        assert converted == {"site-name": "a", "site_name": "b"}
        assert conversions == []

    def test_reconcile_converts_before_patching(self, engine: ReconciliationEngine) -> None:
        template = Template(
            id="t",
            name="T",
            required=(TemplateField("date_created", FieldType.DATE),),
        )
        result = engine.reconcile(
            {"date-created": "2024-01-01"},
            template,
            Path("a.md"),
            auto_patch=True,
            convert_kebab_keys=True,
        )
        assert result.patched == {"date_created": "2024-01-01"}
        assert result.conversions == (("date-created", "date_created"),)
        assert result.report.missing_fields == ("date_created",)
        assert result.report.extra_fields == ("date-created",)
        assert result.added == ()
