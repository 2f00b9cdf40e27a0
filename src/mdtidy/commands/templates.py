"""Command: list registered templates."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from mdtidy.commands._base import MdCommand

if TYPE_CHECKING:
    from mdtidy.commands._context import AppContext


@click.command(
    cls=MdCommand,
    examples="""\
  mdtidy templates
  mdtidy -v templates
  mdtidy --json templates""",
)
@click.pass_obj
def templates(app: AppContext) -> None:
    """List templates, their fields, and the directories that use them."""
    from mdtidy.services.templates import TemplateService

    app.emit(TemplateService(app.workspace).list_templates())
