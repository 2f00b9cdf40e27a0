"""Subcommand modules for mdtidy.

Provides register_commands() which uses deferred imports to keep
``mdtidy --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the standalone commands on the root CLI group."""
    from mdtidy.commands.check import check
    from mdtidy.commands.fix import fix
    from mdtidy.commands.templates import templates

    cli.add_command(check)
    cli.add_command(fix)
    cli.add_command(templates)
