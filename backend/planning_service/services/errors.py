"""HTTP errors with stable machine-readable codes.

Every error raised by the planning services is an ``HTTPException`` whose
``detail`` is ``{"code": ..., "message": ...}`` plus optional extras. Only
conflict and staleness errors are flagged retryable.
"""
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

# PostgreSQL SQLSTATEs
PG_EXCLUSION_VIOLATION = "23P01"
PG_UNIQUE_VIOLATION = "23505"


def planning_error(status_code: int, code: str, message: str, **extra: Any) -> HTTPException:
    detail: dict[str, Any] = {"code": code, "message": message}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def bad_request(code: str, message: str) -> HTTPException:
    return planning_error(status.HTTP_400_BAD_REQUEST, code, message)


def not_found(message: str = "Planning event not found", code: str = "NOT_FOUND") -> HTTPException:
    return planning_error(status.HTTP_404_NOT_FOUND, code, message)


def archived_immutable() -> HTTPException:
    return planning_error(
        status.HTTP_409_CONFLICT, "ARCHIVED_IMMUTABLE", "Archived event cannot be modified",
    )


def conflict_error(conflicts: list[dict[str, Any]]) -> HTTPException:
    return planning_error(
        status.HTTP_409_CONFLICT,
        "PLANNING_CONFLICT",
        "Resource has conflicting events",
        conflicts=conflicts,
        retryable=True,
    )


def stale_error() -> HTTPException:
    return planning_error(
        status.HTTP_409_CONFLICT,
        "PLANNING_STALE",
        "Event has been modified by another user. Re-fetch and retry.",
        retryable=True,
    )


def _sqlstate(err: IntegrityError) -> Optional[str]:
    orig = err.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_integrity_error(err: IntegrityError) -> Optional[HTTPException]:
    """Map storage constraint violations onto the same errors as the pre-checks.

    Returns None when the violation is not one the API reports as a conflict.
    """
    code = _sqlstate(err)
    if code == PG_EXCLUSION_VIOLATION:
        return conflict_error([])
    if code == PG_UNIQUE_VIOLATION or "UNIQUE constraint failed" in str(err.orig):
        return planning_error(
            status.HTTP_409_CONFLICT, "UNIQUE_VIOLATION", "Record already exists",
        )
    return None
