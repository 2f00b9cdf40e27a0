"""Built-in content-category templates.

Imported lazily by :func:`mdtidy.domain.templates.get_template`, which
registers every template defined here.
"""

from __future__ import annotations

from mdtidy.domain import defaults
from mdtidy.domain import templates as t
from mdtidy.domain.types import FieldKind, FieldType

_OPTIONAL = FieldKind.OPTIONAL


def _site_uuid() -> t.TemplateField:
    return t.TemplateField(
        "site_uuid",
        description="Unique identifier for the document",
        default_factory=defaults.site_uuid,
    )


def _date_created() -> t.TemplateField:
    return t.TemplateField(
        "date_created",
        FieldType.DATE,
        description="Creation date",
        default_factory=defaults.date_created,
    )


def _date_modified() -> t.TemplateField:
    return t.TemplateField(
        "date_modified",
        FieldType.DATE,
        description="Last modification date",
        default_factory=defaults.current_date,
    )


def _optional_url(name: str, description: str) -> t.TemplateField:
    return t.TemplateField(
        name,
        kind=_OPTIONAL,
        description=description,
        inspector=t.url(name, allow_empty=True),
    )


def _optional(name: str, description: str, type_: FieldType = FieldType.STRING) -> t.TemplateField:
    return t.TemplateField(name, type_, _OPTIONAL, description)


_SEMVER = r"\d+\.\d+\.\d+(\.\d+)?"


TOOLING = t.Template(
    id="tooling",
    name="Tooling Document",
    description="Tools, products and services, usually with a canonical url",
    required=(
        _site_uuid(),
        t.TemplateField(
            "tags",
            FieldType.ARRAY,
            description="Categorization tags",
            default_factory=defaults.tags_from_path("tooling"),
        ),
        _date_created(),
        _date_modified(),
    ),
    optional=(
        _optional_url("url", "Official website URL"),
        _optional_url("image", "Image URL"),
        _optional("site_name", "Name of the site"),
        _optional_url("favicon", "Favicon URL"),
        _optional_url("youtube_channel_url", "YouTube channel URL"),
        _optional_url("og_screenshot_url", "Screenshot URL"),
        _optional("og_last_fetch", "Timestamp of last preview fetch"),
        _optional("og_error", "Error from the last preview fetch"),
    ),
)

ESSAYS = t.Template(
    id="essays",
    name="Essay",
    description="Long-form writing",
    required=(
        t.TemplateField("title", description="Title"),
        t.TemplateField("lede", description="Brief description"),
        t.TemplateField(
            "date_authored_initial_draft",
            FieldType.DATE,
            description="Date of initial draft",
            default_factory=defaults.date_created,
        ),
        t.TemplateField(
            "date_authored_current_draft",
            FieldType.DATE,
            description="Date of current draft",
            default_factory=defaults.current_date,
        ),
        t.TemplateField(
            "at_semantic_version",
            description="Semantic version",
            inspector=t.matching("at_semantic_version", _SEMVER),
            default="0.0.0.1",
        ),
        t.TemplateField("status", description="Status", default="To-Do"),
        t.TemplateField("augmented_with", description="AI model used"),
        t.TemplateField("category", description="Category"),
        t.TemplateField("tags", FieldType.ARRAY, description="Tags"),
        _date_created(),
        _date_modified(),
        _site_uuid(),
        t.TemplateField("authors", FieldType.ARRAY, description="Authors"),
        t.TemplateField("portrait_image", description="Portrait image URL"),
        t.TemplateField("image_prompt", description="Image prompt for generative tools"),
        t.TemplateField("banner_image", description="Banner image URL"),
    ),
    optional=(
        _optional("date_authored_final_draft", "Date of final draft", FieldType.DATE),
        _optional("date_first_published", "Date of first publication", FieldType.DATE),
        _optional("date_last_updated", "Date of last update", FieldType.DATE),
        _optional("publish", "Publish flag", FieldType.BOOLEAN),
    ),
)

PROMPTS = t.Template(
    id="prompts",
    name="Prompt",
    description="Reusable prompts",
    required=(
        t.TemplateField("title", description="Title of the prompt"),
        t.TemplateField(
            "lede",
            description="Brief description of the prompt",
            default="Brief description of the prompt functionality and purpose",
        ),
        t.TemplateField(
            "date_authored_initial_draft",
            FieldType.DATE,
            description="Date of initial draft",
            default_factory=defaults.current_date,
        ),
        t.TemplateField(
            "date_authored_current_draft",
            FieldType.DATE,
            description="Date of current draft",
            default_factory=defaults.current_date,
        ),
        t.TemplateField(
            "at_semantic_version",
            description="Semantic version of the prompt",
            inspector=t.matching("at_semantic_version", _SEMVER),
            default="0.0.0.1",
        ),
        t.TemplateField("authors", FieldType.ARRAY, description="Author(s) of the prompt"),
        t.TemplateField("status", description="Current status", default="To-Prompt"),
        t.TemplateField("augmented_with", description="AI model used for augmentation"),
        t.TemplateField("category", description="Category", default="Prompts"),
        t.TemplateField(
            "tags",
            FieldType.ARRAY,
            description="Categorization tags",
            default_factory=defaults.tags_from_path("prompts"),
        ),
        _date_created(),
        _date_modified(),
        _site_uuid(),
    ),
)

CONCEPTS = t.Template(
    id="concepts",
    name="Concept",
    description="Concept definitions",
    required=(_site_uuid(), _date_created(), _date_modified()),
    optional=(
        _optional("related_concepts", "Related concepts", FieldType.ARRAY),
        _optional("aliases", "Alternative names", FieldType.ARRAY),
        _optional_url("wikipedia_url", "Wikipedia URL"),
    ),
)

VOCABULARY = t.Template(
    id="vocabulary",
    name="Vocabulary Term",
    description="Glossary entries",
    required=(_site_uuid(), _date_created(), _date_modified()),
    optional=(
        _optional("related_terms", "Related terms", FieldType.ARRAY),
        _optional("aliases", "Alternative names", FieldType.ARRAY),
        _optional_url("wikipedia_url", "Wikipedia URL"),
    ),
)

SPECIFICATIONS = t.Template(
    id="specifications",
    name="Specification",
    description="Technical specification documents",
    required=(
        t.TemplateField("title", description="Title"),
        t.TemplateField(
            "lede",
            description="Brief description",
            default="Technical specification document outlining implementation details",
        ),
        t.TemplateField("status", description="Status", default="Draft"),
        t.TemplateField("authors", FieldType.ARRAY, description="Authors"),
        t.TemplateField("category", description="Category", default="Technical Specifications"),
        t.TemplateField(
            "tags",
            FieldType.ARRAY,
            description="Categorization tags",
            default_factory=defaults.tags_from_path("specs"),
        ),
        _date_created(),
        _date_modified(),
        _site_uuid(),
    ),
    optional=(
        _optional("date_approved", "Approval date", FieldType.DATE),
        _optional("date_implemented", "Implementation date", FieldType.DATE),
        _optional("date_deprecated", "Deprecation date", FieldType.DATE),
        _optional("related_specs", "Related specifications", FieldType.ARRAY),
    ),
)

ISSUE_RESOLUTION = t.Template(
    id="issue-resolution",
    name="Issue Resolution",
    description="Bug and incident write-ups, from report to resolution",
    required=(
        t.TemplateField("title", description="Title of the issue"),
        t.TemplateField("status", description="Resolution status", default="Open"),
        t.TemplateField(
            "affected_systems",
            description="Systems affected by the issue",
            inspector=t.required_string("affected_systems", allow_empty=True),
            default="",
        ),
        t.TemplateField("category", description="Issue category", default="Bug"),
        t.TemplateField(
            "lede",
            description="Brief description of the issue",
            inspector=t.required_string("lede", allow_empty=True),
            default="",
        ),
        t.TemplateField(
            "at_semantic_version",
            description="Version the issue was observed at",
            inspector=t.matching("at_semantic_version", _SEMVER),
            default="0.0.0.0",
        ),
        _date_created(),
        _date_modified(),
        _site_uuid(),
        t.TemplateField(
            "tags",
            FieldType.ARRAY,
            description="Categorization tags",
            default_factory=defaults.fixed_tags("type/issue-resolution"),
        ),
    ),
    optional=(
        _optional("date_reported", "Date the issue was reported", FieldType.DATE),
        _optional("date_resolved", "Date the issue was resolved", FieldType.DATE),
        _optional("date_last_updated", "Date of last update", FieldType.DATE),
        _optional("priority", "Priority"),
        _optional("severity", "Severity"),
        _optional("author_issuer", "Who reported the issue"),
        _optional("author_resolver", "Who resolved the issue"),
        _optional("authors", "Authors", FieldType.ARRAY),
        _optional("resolution_summary", "How the issue was resolved"),
        _optional("augmented_with", "AI model used"),
        _optional("portrait_image", "Portrait image URL"),
        _optional("image_prompt", "Image prompt for generative tools"),
        _optional("banner_image", "Banner image URL"),
        _optional("publish", "Publish flag", FieldType.BOOLEAN),
    ),
)

REMINDERS = t.Template(
    id="reminders",
    name="Reminder",
    description="Short notes-to-self kept in the public log",
    required=(
        t.TemplateField("title", description="Title"),
        t.TemplateField("lede", description="Brief description"),
        t.TemplateField(
            "date_authored_initial_draft",
            FieldType.DATE,
            description="Date of initial draft",
            default_factory=defaults.date_created,
        ),
        t.TemplateField(
            "date_authored_current_draft",
            FieldType.DATE,
            description="Date of current draft",
            default_factory=defaults.current_date,
        ),
        t.TemplateField(
            "at_semantic_version",
            description="Semantic version",
            inspector=t.matching("at_semantic_version", _SEMVER),
            default="0.0.0.1",
        ),
        t.TemplateField("authors", FieldType.ARRAY, description="Authors"),
        t.TemplateField("status", description="Status", default="To-Do"),
        t.TemplateField("augmented_with", description="AI model used"),
        t.TemplateField("category", description="Category", default="Reminders"),
        t.TemplateField(
            "tags",
            FieldType.ARRAY,
            description="Categorization tags",
            default_factory=defaults.tags_from_path("reminders"),
        ),
        _date_created(),
        _date_modified(),
        _site_uuid(),
        t.TemplateField("portrait_image", description="Portrait image URL"),
        t.TemplateField("image_prompt", description="Image prompt for generative tools"),
    ),
    optional=(
        _optional("date_authored_final_draft", "Date of final draft", FieldType.DATE),
        _optional("date_first_published", "Date of first publication", FieldType.DATE),
        _optional("date_last_updated", "Date of last update", FieldType.DATE),
        _optional("date_first_run", "Date the reminder first fired", FieldType.DATE),
    ),
)

# Body-only template: declares no fields, exists so a directory can run the
# citation pass without frontmatter rules.
CITATIONS = t.Template(
    id="citations",
    name="Citations",
    description="Footnote citation processing only",
)

for _template in (
    TOOLING,
    ESSAYS,
    PROMPTS,
    CONCEPTS,
    VOCABULARY,
    SPECIFICATIONS,
    ISSUE_RESOLUTION,
    REMINDERS,
    CITATIONS,
):
    t.register_template(_template)
