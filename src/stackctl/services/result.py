"""ServiceResult — what every service operation returns.

Services report expected operator errors (missing secret, compose failure,
topology violation) as ``ok=False`` results with a stable error code
instead of raising. The CLI turns them into output and an exit status.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ServiceError(BaseModel):
    """Why an operation failed: a stable ``code`` plus human and machine detail."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Outcome of one service operation.

    Attributes:
        ok: Whether the operation succeeded.
        op: Operation name (``"up"``, ``"check"``, ``"probe.tls"``...).
        data: Operation-specific payload.
        warnings: Non-fatal findings, printed to stderr by the CLI.
        error: Set when ``ok`` is False.
        meta: Telemetry and other diagnostics (``--verbose``).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @property
    def code(self) -> str | None:
        """Error code, or None on success."""
        return self.error.code if self.error else None

    def as_op(self, op: str) -> ServiceResult:
        """The same outcome reported under another operation name."""
        return self.model_copy(update={"op": op})


def fail(op: str, code: str, message: str, **detail: Any) -> ServiceResult:
    """Build a failed result; keyword arguments become ``error.detail``."""
    return ServiceResult(
        ok=False,
        op=op,
        error=ServiceError(code=code, message=message, detail=detail),
    )
