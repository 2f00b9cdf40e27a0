"""TemplateService — describe registered templates and where they apply."""

from __future__ import annotations

from typing import Any

from mdtidy.domain.templates import TemplateField, list_templates
from mdtidy.services.base import BaseService
from mdtidy.services.result import ServiceResult


def _describe_field(tf: TemplateField) -> dict[str, Any]:
    return {
        "name": tf.name,
        "type": str(tf.type),
        "description": tf.description,
    }


class TemplateService(BaseService):
    def list_templates(self) -> ServiceResult:
        """All registered templates with their fields and configured directories."""
        directories = self._workspace.settings.directories
        items = [
            {
                "id": template.id,
                "name": template.name,
                "directories": [d.path for d in directories if d.template == template.id],
                "required": [_describe_field(f) for f in template.required],
                "optional": [_describe_field(f) for f in template.optional],
            }
            for template in list_templates()
        ]
        warnings = [
            f"Directory {d.path!r} uses unknown template {d.template!r}"
            for d in directories
            if d.template not in {item["id"] for item in items}
        ]
        return ServiceResult(
            ok=True,
            op="templates",
            data={"count": len(items), "items": items},
            warnings=warnings,
        )
