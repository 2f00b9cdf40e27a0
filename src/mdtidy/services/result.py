"""ServiceResult and ServiceError — the contract between services and the CLI.

Batch operations return ServiceResult; the CLI renders it and maps
``ok`` to the process exit status.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Return type of every batch service operation.

    Attributes:
        ok: False when any file failed; the data payload is still complete.
        op: Name of the operation (``"check"``, ``"fix"``, ``"templates"``).
        data: Operation-specific payload.
        warnings: Non-fatal issues encountered during the run.
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (timing, counts, etc.).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None
