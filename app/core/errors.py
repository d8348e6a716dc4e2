from __future__ import annotations

from fastapi import HTTPException


class ArchiveError(Exception):
    """Base class for errors raised by the archive services."""


class NotFoundError(ArchiveError, LookupError):
    """Referenced file / department / transaction is absent."""


class UnauthorizedError(ArchiveError, PermissionError):
    """Acting user lacks ownership or department standing."""


class IntegrityViolationError(ArchiveError):
    """
    A multi-row write failed and was rolled back in full.
    The message shown to callers is always generic.
    """


class DataCorruptionError(ArchiveError):
    """Cyclic or excessively deep department parent chain."""


GENERIC_FAILURE = "The operation could not be completed."


def to_http(exc: Exception) -> HTTPException:
    """
    Map a service exception onto the HTTP status the routers return.
    """
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc) or "Not found.")
    if isinstance(exc, UnauthorizedError):
        return HTTPException(status_code=403, detail=str(exc) or "Forbidden.")
    if isinstance(exc, IntegrityViolationError):
        return HTTPException(status_code=500, detail=GENERIC_FAILURE)
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=GENERIC_FAILURE)
