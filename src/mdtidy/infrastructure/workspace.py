"""Workspace — the content tree a batch run operates on.

The Workspace is the single dependency injected into every service.  It
resolves which :class:`~mdtidy.config.models.DirectoryConfig` (and so
which template) governs a file, discovers files to process, and builds
the HTTP providers used for enrichment.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from mdtidy.domain.templates import Template, get_template
from mdtidy.infrastructure.filesystem import find_markdown_files
from mdtidy.infrastructure.opengraph import OpenGraphClient

if TYPE_CHECKING:
    from mdtidy.config.models import DirectoryConfig
    from mdtidy.config.settings import MdtidySettings

logger = logging.getLogger(__name__)


class Workspace:
    """Directory map and file discovery for one project."""

    def __init__(self, settings: MdtidySettings) -> None:
        self.settings = settings

    @property
    def root(self) -> Path:
        return self.settings.project_root

    @property
    def content_root(self) -> Path:
        return self.settings.content_root

    @property
    def reports_path(self) -> Path:
        return self.settings.reports_path

    @property
    def citation_registry_path(self) -> Path:
        return self.settings.citation_registry_path

    def directory_for(self, path: Path) -> DirectoryConfig | None:
        """The most specific configured directory containing *path*."""
        try:
            rel = path.resolve().relative_to(self.content_root.resolve()).as_posix()
        except ValueError:
            return None

        best: DirectoryConfig | None = None
        for entry in self.settings.directories:
            if rel == entry.path or rel.startswith(f"{entry.path}/"):
                if best is None or len(entry.path) > len(best.path):
                    best = entry
        return best

    def template_for(self, directory: DirectoryConfig) -> Template:
        return get_template(directory.template)

    def discover(self, paths: Iterable[Path] | None = None) -> list[Path]:
        """Files to process: under *paths* if given, else every configured directory."""
        if paths:
            roots = [Path(p) for p in paths]
        else:
            roots = [self.content_root / entry.path for entry in self.settings.directories]

        seen: dict[Path, None] = {}
        for root in roots:
            if not root.exists():
                logger.debug("Skipping missing path %s", root)
                continue
            for found in find_markdown_files(root):
                seen.setdefault(found, None)
        return list(seen)

    def open_graph_client(self) -> OpenGraphClient | None:
        """HTTP provider for previews and screenshots, or None when unconfigured."""
        config = self.settings.enrichment
        if not config.enabled:
            return None
        if not config.api_key:
            logger.warning("Enrichment enabled but no API key set (MDTIDY_ENRICHMENT__API_KEY)")
            return None
        return OpenGraphClient(
            config.api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )
