"""Translate domain errors into HTTP responses.

Endpoints catch RegistrarError and re-raise ``http_error(e)``.  The
response body keeps the stable kind next to the message:

    {"detail": {"kind": "already_enrolled", "message": "..."}}
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from registrar.core.errors import (
    AlreadyEnrolled,
    ConflictOnWrite,
    CourseFull,
    CourseNotOpen,
    DependencyUnavailable,
    NotAuthorized,
    NotFound,
    RegistrarError,
    StudentNotEnrolled,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[RegistrarError], int], ...] = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AlreadyEnrolled, status.HTTP_409_CONFLICT),
    (StudentNotEnrolled, status.HTTP_409_CONFLICT),
    (CourseNotOpen, status.HTTP_409_CONFLICT),
    (CourseFull, status.HTTP_409_CONFLICT),
    (ConflictOnWrite, status.HTTP_409_CONFLICT),
    (NotAuthorized, status.HTTP_403_FORBIDDEN),
    (DependencyUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(error: RegistrarError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def http_error(error: RegistrarError) -> HTTPException:
    code = status_for(error)
    if code >= 500:
        logger.warning("Request failed: %s: %s", error.kind, error.message)
    else:
        logger.info("Request rejected: %s: %s", error.kind, error.message)
    return HTTPException(
        status_code=code,
        detail={"kind": error.kind, "message": error.message},
    )
