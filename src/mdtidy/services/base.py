"""BaseService — foundation for mdtidy's batch services.

Every service receives a :class:`Workspace` at construction time.  The
Workspace provides the directory map, file discovery, and provider
construction; services own the control flow and return ServiceResult.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mdtidy.infrastructure.workspace import Workspace


class BaseService:
    """Base for service-layer classes.

    Usage::

        class TidyService(BaseService):
            def check(self, paths=None) -> ServiceResult:
                files = self._workspace.discover(paths)
                ...
    """

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace
