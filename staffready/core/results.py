"""
Outcome types for best-effort side effects.

Receipt uploads and notification deliveries must never fail the operation
that triggered them.  Instead of swallowing the exception, the side effect
reports a ``SideEffectResult`` that callers may log, surface or ignore.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class NonFatalError:
    """A failure that was recorded but did not abort the caller."""
    operation: str
    target: str
    message: str

    @classmethod
    def from_exception(cls, operation: str, target: str, exc: BaseException) -> "NonFatalError":
        return cls(
            operation=operation,
            target=target,
            message=f"{type(exc).__name__}: {exc}",
        )


@dataclass(frozen=True)
class SideEffectResult:
    """Result of a best-effort side effect."""
    ok: bool
    value: Optional[str] = None
    error: Optional[NonFatalError] = None

    @classmethod
    def success(cls, value: Optional[str] = None) -> "SideEffectResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: NonFatalError) -> "SideEffectResult":
        return cls(ok=False, error=error)
