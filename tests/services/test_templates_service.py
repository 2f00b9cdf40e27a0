"""Tests for TemplateService."""

from __future__ import annotations

from pathlib import Path

from mdtidy.config.models import DirectoryConfig
from mdtidy.config.settings import MdtidySettings
from mdtidy.infrastructure.workspace import Workspace
from mdtidy.services.templates import TemplateService


class TestListTemplates:
    def test_lists_builtins_with_directories(self, workspace: Workspace) -> None:
        result = TemplateService(workspace).list_templates()
        assert result.ok
        assert result.op == "templates"
        items = {item["id"]: item for item in result.data["items"]}
        assert items["tooling"]["directories"] == ["tooling"]
        assert items["prompts"]["directories"] == ["lost-in-public/prompts"]
        assert items["specifications"]["directories"] == ["specs"]
        assert items["reminders"]["directories"] == ["lost-in-public/reminders"]
        assert items["issue-resolution"]["directories"] == ["lost-in-public/issue-resolution"]
        assert items["citations"]["directories"] == []
        assert items["citations"]["required"] == []
        required = [f["name"] for f in items["tooling"]["required"]]
        assert required == ["site_uuid", "tags", "date_created", "date_modified"]
        assert {"name": "tags", "type": "array", "description": "Categorization tags"} in items[
            "tooling"
        ]["required"]
        assert result.warnings == []

    def test_unknown_template_warns(self, project: Path) -> None:
        settings = MdtidySettings.from_cli(
            project_root=project,
            directories=[DirectoryConfig(path="notes", template="nope")],
        )
        result = TemplateService(Workspace(settings)).list_templates()
        assert result.ok
        assert result.warnings == ["Directory 'notes' uses unknown template 'nope'"]
