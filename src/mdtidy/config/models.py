"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, mdtidy.toml only contains
overrides.  A fresh content tree works with no config file at all; the
built-in directory map covers the standard layout.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ContentConfig(BaseModel):
    """[content] section."""

    model_config = {"frozen": True}

    root: str = "content"
    reports_dir: str = "reports"


class DirectoryConfig(BaseModel):
    """One [[directories]] entry: a content subtree governed by a template.

    Attributes:
        path: Directory relative to the content root.
        template: Registered template id.
        open_graph: Fetch link previews and screenshots for files here.
        auto_patch: Inject defaults for missing/empty required fields.
        reorder_to_template: Emit template fields first, in template order.
        convert_kebab_keys: Rename ``kebab-case`` keys to ``snake_case``.
        citations: Rewrite numeric footnotes to registry-backed hex ids.
        add_site_uuid: Generate ``site_uuid`` when it is missing or empty.
    """

    model_config = {"frozen": True}

    path: str
    template: str
    open_graph: bool = False
    auto_patch: bool = True
    reorder_to_template: bool = False
    convert_kebab_keys: bool = False
    citations: bool = False
    add_site_uuid: bool = True

    @field_validator("path")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        return value.strip("/")


def default_directories() -> list[DirectoryConfig]:
    return [
        DirectoryConfig(path="tooling", template="tooling", open_graph=True),
        DirectoryConfig(path="vocabulary", template="vocabulary", citations=True),
        DirectoryConfig(path="concepts", template="concepts"),
        DirectoryConfig(path="essays", template="essays"),
        DirectoryConfig(path="lost-in-public/prompts", template="prompts"),
        DirectoryConfig(path="lost-in-public/reminders", template="reminders"),
        DirectoryConfig(path="lost-in-public/issue-resolution", template="issue-resolution"),
        DirectoryConfig(path="specs", template="specifications"),
    ]


class EnrichmentConfig(BaseModel):
    """[enrichment] section — link preview and screenshot fetching."""

    model_config = {"frozen": True}

    enabled: bool = True
    api_key: str | None = None
    base_url: str = "https://opengraph.io/api/1.1"
    timeout_seconds: float = 30.0
    preview_max_attempts: int = Field(default=3, ge=1)
    screenshot_max_attempts: int = Field(default=2, ge=1)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    max_concurrency: int = Field(default=4, ge=1)


class CitationConfig(BaseModel):
    """[citations] section: footnote registry and section layout."""

    model_config = {"frozen": True}

    registry_path: str = ".mdtidy/citation-registry.json"
    hex_length: int = Field(default=6, ge=4, le=32)
    section_header: str = "# Footnotes"
    section_separator: str = "***"


class ReportConfig(BaseModel):
    """[report] section."""

    model_config = {"frozen": True}

    enabled: bool = True
