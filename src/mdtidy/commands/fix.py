"""Command: patch, enrich, and rewrite frontmatter."""

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
  mdtidy fix
  mdtidy fix content/tooling
  mdtidy fix --no-enrich
  mdtidy fix --no-report content/essays""",
)
@PATHS_ARGUMENT
@click.option("--no-enrich", is_flag=True, help="Skip OpenGraph and screenshot fetches.")
@click.option("--no-report", is_flag=True, help="Do not write a change report.")
@click.pass_obj
def fix(app: AppContext, paths: tuple[str, ...], no_enrich: bool, no_report: bool) -> None:
    """Fill missing fields, enrich link metadata, and write files back.

    With no PATHS, every configured directory is processed.  A change
    report is written to the reports directory unless --no-report.
    """
    from mdtidy.services.tidy import TidyService

    svc = TidyService(app.workspace)
    app.emit(svc.fix([Path(p) for p in paths] or None, enrich=not no_enrich, report=not no_report))
