"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands via
``@click.pass_obj``.  Owns the lazily-built Workspace and the single
place where results are printed and mapped to exit codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from mdtidy.config.logging import configure_logging
from mdtidy.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from mdtidy.config.settings import MdtidySettings
    from mdtidy.infrastructure.workspace import Workspace
    from mdtidy.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The workspace is built on first use so ``--help`` and ``--version``
    never touch the content tree.
    """

    def __init__(self, settings: MdtidySettings) -> None:
        self.settings = settings
        self._workspace: Workspace | None = None
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            from mdtidy.infrastructure.workspace import Workspace

            self._workspace = Workspace(self.settings)
        return self._workspace

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout; warnings go to stderr so piped output stays clean.
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            if output:
                click.echo(output)
            # JSON output already carries warnings in the payload.
            if not settings.json_output and not settings.quiet:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
