"""
Translation of service-layer refusals into HTTP errors.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException, status

from staffready.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    MissingValueError,
    NotFoundError,
    PolicyViolationError,
)

_STATUS_BY_ERROR: tuple[tuple[type[ValueError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (PolicyViolationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (MissingValueError, status.HTTP_422_UNPROCESSABLE_ENTITY),
)


def raise_from_value_error(exc: ValueError) -> NoReturn:
    """Convert a service-layer ValueError into the appropriate HTTPException.

    Unclassified ``ValueError``s become 422 (validation / business rule failure).
    """
    for error_cls, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=str(exc),
    ) from exc
