"""Rich Console factory and theme for mdtidy output.

Consoles render into a StringIO buffer so every renderer keeps the
``format_result() -> str`` contract.  Rich drops color codes on its own
when the output is not a terminal (CliRunner, pipes).
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

MDTIDY_THEME = Theme(
    {
        "md.ok": "bold green",
        "md.error": "bold red",
        "md.warning": "bold yellow",
        "md.op": "bold cyan",
        "md.key": "dim",
        "md.path": "dim",
        "md.field": "bold blue",
        "md.template": "magenta",
        "md.status.missing": "red",
        "md.status.empty": "yellow",
        "md.status.malformed": "bold red",
    }
)

_STATUS_STYLES: dict[str, str] = {
    "missing": "md.status.missing",
    "empty": "md.status.empty",
    "malformed": "md.status.malformed",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Override terminal width (keeps test output stable).
    """
    return Console(
        file=StringIO(),
        theme=MDTIDY_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_status(status: str) -> str:
    """Rich style name for a field status (``missing``, ``empty``, ...)."""
    return _STATUS_STYLES.get(status, "")
