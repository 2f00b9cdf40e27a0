"""Shared pytest fixtures for mdtidy tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from mdtidy.config.settings import MdtidySettings
from mdtidy.infrastructure.workspace import Workspace

CONTENT_DIRS = (
    "tooling",
    "vocabulary",
    "concepts",
    "essays",
    "lost-in-public/prompts",
    "lost-in-public/reminders",
    "lost-in-public/issue-resolution",
    "specs",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's own MDTIDY_* environment out of the tests."""
    for name in (
        "MDTIDY_CONFIG",
        "MDTIDY_ENRICHMENT__API_KEY",
        "MDTIDY_ENRICHMENT__ENABLED",
        "MDTIDY_CONTENT__ROOT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Project root with the default content layout; also the CWD.

    This is the single source of truth for the content directory layout.
    """
    for rel in CONTENT_DIRS:
        (tmp_path / "content" / rel).mkdir(parents=True)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def settings(project: Path) -> MdtidySettings:
    return MdtidySettings.from_cli(project_root=project)


@pytest.fixture
def workspace(settings: MdtidySettings) -> Workspace:
    return Workspace(settings)
