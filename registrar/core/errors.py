"""Domain error taxonomy shared by the ledger and the grading gate.

Services raise these; the API layer translates them into HTTP responses
(see registrar.api.errors).  Every error carries a stable ``kind`` that
clients can branch on and a human-readable message.

DependencyUnavailable is not a NotAuthorized: "could not check" and
"checked and denied" map to different responses (503 vs 403).
"""

from __future__ import annotations


class RegistrarError(Exception):
    kind = "registrar_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RegistrarError):
    kind = "validation_error"


class InvalidScore(ValidationError):
    kind = "invalid_score"


class NotFound(RegistrarError):
    kind = "not_found"


class CourseNotFound(NotFound):
    kind = "course_not_found"

    def __init__(self, course_id: str) -> None:
        super().__init__(f"course {course_id!r} not found")
        self.course_id = course_id


class StudentNotFound(NotFound):
    kind = "student_not_found"

    def __init__(self, student_id: str) -> None:
        super().__init__(f"student {student_id!r} not found")
        self.student_id = student_id


class EnrollmentNotFound(NotFound):
    kind = "enrollment_not_found"


class GradeNotFound(NotFound):
    kind = "grade_not_found"


class AlreadyEnrolled(RegistrarError):
    kind = "already_enrolled"


class StudentNotEnrolled(RegistrarError):
    kind = "student_not_enrolled"


class CourseNotOpen(RegistrarError):
    kind = "course_not_open"


class CourseFull(RegistrarError):
    kind = "course_full"


class NotAuthorized(RegistrarError):
    kind = "not_authorized"


class DependencyUnavailable(RegistrarError):
    kind = "dependency_unavailable"

    def __init__(self, dependency: str, reason: str) -> None:
        super().__init__(f"{dependency} service unavailable: {reason}")
        self.dependency = dependency
        self.reason = reason


class ConflictOnWrite(RegistrarError):
    """A write hit a uniqueness constraint (lost a race to another writer)."""

    kind = "conflict_on_write"


def require_ref(value: str | None, name: str) -> str:
    """Return ``value`` stripped, or raise ValidationError if it is blank."""
    if value is None or not value.strip():
        raise ValidationError(f"{name} must be non-empty")
    return value.strip()
