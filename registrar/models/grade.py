from __future__ import annotations

import datetime
from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class GradeRecord:
    """One row per (student_id, course_id); resubmission updates in place."""

    id: UUID
    student_id: str
    course_id: str
    score: float
    derived_grade: float
    letter_grade: str
    comments: str
    submitted_by: str
    submitted_at: datetime.datetime
    last_updated: datetime.datetime

    @staticmethod
    def new(
        *,
        student_id: str,
        course_id: str,
        score: float,
        derived_grade: float,
        letter_grade: str,
        comments: str,
        submitted_by: str,
        now: datetime.datetime,
    ) -> GradeRecord:
        return GradeRecord(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            score=score,
            derived_grade=derived_grade,
            letter_grade=letter_grade,
            comments=comments,
            submitted_by=submitted_by,
            submitted_at=now,
            last_updated=now,
        )


@dataclass(frozen=True, slots=True)
class GradeView:
    """A grade plus read-through display data.

    The display fields are None when the owning service could not be reached
    for that row; the grade itself is always present.
    """

    grade: GradeRecord
    course_code: str | None = None
    course_name: str | None = None
    student_name: str | None = None
    student_email: str | None = None
