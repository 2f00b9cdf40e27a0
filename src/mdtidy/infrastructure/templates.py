"""Jinja2 environment for report rendering with per-project overrides."""

from __future__ import annotations

from pathlib import Path

from jinja2 import BaseLoader, ChoiceLoader, Environment, FileSystemLoader, PackageLoader

OVERRIDE_DIR = Path(".mdtidy") / "templates"


def build_template_environment(group: str, *, project_root: Path | None = None) -> Environment:
    """Build an environment that prefers ``<project>/.mdtidy/templates/<group>/``.

    Packaged templates under ``mdtidy/templates/<group>/`` are the fallback,
    so a project only needs to ship the files it wants to change.
    """
    loaders: list[BaseLoader] = []
    if project_root is not None:
        loaders.append(FileSystemLoader(str(project_root / OVERRIDE_DIR / group)))
    loaders.append(PackageLoader("mdtidy", f"templates/{group}"))
    return Environment(
        loader=ChoiceLoader(loaders),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
