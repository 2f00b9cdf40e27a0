"""Command: report frontmatter problems without changing anything."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from mdtidy.commands._base import PATHS_ARGUMENT, MdCommand

if TYPE_CHECKING:
    from mdtidy.commands._context import AppContext


@click.command(
    cls=MdCommand,
    examples="""\
  mdtidy check
  mdtidy check content/tooling
  mdtidy --json check content/essays/on-writing.md
  mdtidy -q check""",
)
@PATHS_ARGUMENT
@click.pass_obj
def check(app: AppContext, paths: tuple[str, ...]) -> None:
    """Inspect frontmatter against each directory's template.

    With no PATHS, every configured directory is checked.  Nothing is
    written and no URLs are fetched.
    """
    from mdtidy.services.tidy import TidyService

    svc = TidyService(app.workspace)
    app.emit(svc.check([Path(p) for p in paths] or None))
