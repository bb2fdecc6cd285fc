"""Typed errors raised by the progress engine and its repositories.

Routers translate these into HTTP responses; nothing below the API layer
raises HTTPException.  Database errors are folded into the same hierarchy
by `from_db_error`, so a caller only ever handles `ProgressError`.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, NoResultFound, SQLAlchemyError

CODE_NOT_FOUND = "NOT_FOUND"
CODE_DUPLICATE_KEY = "DUPLICATE_KEY"
CODE_FORBIDDEN = "FORBIDDEN"
CODE_VALIDATION = "VALIDATION"
CODE_SERVER_ERROR = "SERVER_ERROR"

# PostgreSQL SQLSTATE classes we care about
_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"
_CHECK_VIOLATION = "23514"
_SERIALIZATION_FAILURE = "40001"
_DEADLOCK_DETECTED = "40P01"


class ProgressError(Exception):
    """Base error; `code` is stable and safe to expose to clients."""

    code = CODE_SERVER_ERROR
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ProgressError):
    code = CODE_NOT_FOUND
    default_message = "Resource not found"


class ConflictError(ProgressError):
    code = CODE_DUPLICATE_KEY
    default_message = "Resource already exists"


class ForbiddenError(ProgressError):
    code = CODE_FORBIDDEN
    default_message = "Forbidden"


class InvalidError(ProgressError):
    code = CODE_VALIDATION
    default_message = "Invalid progress state"


class InternalError(ProgressError):
    code = CODE_SERVER_ERROR


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # asyncpg exposes `sqlstate`, psycopg exposes `pgcode`
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def from_db_error(exc: SQLAlchemyError) -> ProgressError:
    """Map a SQLAlchemy error onto the progress error hierarchy."""
    if isinstance(exc, NoResultFound):
        return NotFoundError()

    if isinstance(exc, DBAPIError):
        state = _sqlstate(exc)
        if state == _UNIQUE_VIOLATION:
            return ConflictError()
        if state in (_SERIALIZATION_FAILURE, _DEADLOCK_DETECTED):
            # Transient: the transaction was rolled back and can be retried.
            return ConflictError("concurrent update, retry")
        if state == _FOREIGN_KEY_VIOLATION:
            return NotFoundError()
        if state == _CHECK_VIOLATION:
            return InvalidError(str(exc.orig))

    return InternalError()
