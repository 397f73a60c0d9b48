"""Result envelope returned by every dossierctl service call.

Services report failure by value: a ``ServiceResult`` with ``ok=False``
and an :class:`ErrorCode`. The one thing allowed to escape as an exception
is a broken graph invariant, because that means the code itself is wrong.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(StrEnum):
    """Machine-readable failure categories shared by services and the CLI."""

    STORE_ERROR = "STORE_ERROR"
    INVALID_LABEL = "INVALID_LABEL"
    INVALID_QUERY = "INVALID_QUERY"
    INVALID_CURSOR = "INVALID_CURSOR"
    INVALID_FEATURES = "INVALID_FEATURES"
    NOT_FOUND = "NOT_FOUND"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    CHECK_FAILED = "CHECK_FAILED"
    MIGRATION_FAILED = "MIGRATION_FAILED"


class ServiceError(BaseModel):
    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Outcome of one service operation.

    Attributes:
        ok: True when the operation did what was asked.
        op: Operation name, e.g. ``"append_label"`` or ``"query_labels"``.
        data: Operation payload; empty on failure.
        warnings: Non-fatal notes (contradictions, skipped steps).
        error: Populated exactly when ``ok`` is False.
        meta: Side-channel data such as graph version or telemetry spans.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(cls, op: str, code: ErrorCode, message: str, **detail: Any) -> ServiceResult:
        """Shorthand for an ``ok=False`` result carrying a single error."""
        return cls(
            ok=False,
            op=op,
            error=ServiceError(code=code.value, message=message, detail=detail),
        )
