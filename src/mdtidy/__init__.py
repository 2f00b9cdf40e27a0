"""mdtidy — frontmatter reconciliation for Markdown content trees."""

__version__ = "0.1.0"
