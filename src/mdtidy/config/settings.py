"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``MDTIDY_*`` prefix, ``__`` for nested keys
                    (e.g. ``MDTIDY_ENRICHMENT__API_KEY``)
  3. TOML file    — ``mdtidy.toml`` or ``.mdtidy/config.toml``, discovered
                    via walk-up (``MDTIDY_CONFIG`` overrides)
  4. Code defaults — baked into the section models
"""

from __future__ import annotations

import os
import threading
import tomllib
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from mdtidy.config.models import (
    CitationConfig,
    ContentConfig,
    DirectoryConfig,
    EnrichmentConfig,
    ReportConfig,
    default_directories,
)


CONFIG_ENV_VAR = "MDTIDY_CONFIG"

# Checked in order in each directory of the walk.
CONFIG_CANDIDATES = ("mdtidy.toml", ".mdtidy/config.toml")


def _config_in(directory: Path) -> Path | None:
    for name in CONFIG_CANDIDATES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def find_config(start: Path | None = None) -> Path | None:
    """Locate the config file for the project containing *start* (default: cwd).

    ``MDTIDY_CONFIG`` may name a config file or a project directory and
    takes precedence over the walk; a value that resolves to neither
    raises :class:`click.ClickException`.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        found = p if p.is_file() else _config_in(p) if p.is_dir() else None
        if found is None:
            msg = f"{CONFIG_ENV_VAR}={env_path} is not a config file or project directory"
            raise click.ClickException(msg)
        return found

    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        found = _config_in(directory)
        if found is not None:
            return found
    return None


def project_root_for(config_path: Path) -> Path:
    """Directory a config file governs: ``.mdtidy/config.toml`` belongs to the parent."""
    parent = config_path.resolve().parent
    return parent.parent if parent.name == ".mdtidy" else parent


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from an ``mdtidy.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return self._data


# TOML path handed to settings_customise_sources during construction.
_tls = threading.local()


class MdtidySettings(BaseSettings):
    """Unified settings for the mdtidy CLI and services.

    Attributes:
        project_root: Directory the content root is resolved against
            (the directory holding the config, or CWD if none is found).
        config_path: The TOML file in effect, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "MDTIDY_",
        "env_nested_delimiter": "__",
    }

    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    content: ContentConfig = Field(default_factory=ContentConfig)
    directories: list[DirectoryConfig] = Field(default_factory=default_directories)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    citations: CitationConfig = Field(default_factory=CitationConfig)

    @property
    def content_root(self) -> Path:
        return self.project_root / self.content.root

    @property
    def reports_path(self) -> Path:
        return self.project_root / self.content.reports_dir

    @property
    def citation_registry_path(self) -> Path:
        return self.project_root / self.citations.registry_path

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        project_root: Path | None = None,
        **cli_flags: Any,
    ) -> MdtidySettings:
        """Construct settings from a CLI invocation.

        Discovers ``mdtidy.toml`` via walk-up (or explicit *config_path*),
        resolves *project_root* from the config file's parent directory,
        and merges CLI flags as highest-priority overrides.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if not p.is_file():
                msg = f"Config file not found: {config_path}"
                raise click.ClickException(msg)
            toml_path = p
        else:
            toml_path = find_config(project_root)

        resolved_root = project_root
        if resolved_root is None:
            resolved_root = project_root_for(toml_path) if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                project_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None
