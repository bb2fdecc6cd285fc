from __future__ import annotations

from fastapi import HTTPException, status

from app.services.errors import (
    ConflictError,
    ForbiddenError,
    InvalidError,
    NotFoundError,
    ProgressError,
)

_STATUS_BY_ERROR: dict[type[ProgressError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    InvalidError: status.HTTP_400_BAD_REQUEST,
}


def http_error(exc: ProgressError) -> HTTPException:
    """Translate a service error into the response the client sees.

    Anything unmapped is a 500 with a generic message; the original error
    has already been logged where it was raised.
    """
    code = _STATUS_BY_ERROR.get(type(exc))
    if code is None:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Something went wrong",
        )
    return HTTPException(status_code=code, detail=exc.message)
