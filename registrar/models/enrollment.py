from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID, uuid4


class EnrollmentStatus(StrEnum):
    ENROLLED = "enrolled"
    DROPPED = "dropped"


@dataclass(frozen=True, slots=True)
class EnrollmentRecord:
    """One row per (student_id, course_id), reused across drop/re-enroll."""

    id: UUID
    student_id: str
    course_id: str
    status: EnrollmentStatus
    enrollment_date: datetime.datetime

    @staticmethod
    def new(
        *, student_id: str, course_id: str, now: datetime.datetime
    ) -> EnrollmentRecord:
        return EnrollmentRecord(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            status=EnrollmentStatus.ENROLLED,
            enrollment_date=now,
        )

    @property
    def is_enrolled(self) -> bool:
        return self.status == EnrollmentStatus.ENROLLED


@dataclass(frozen=True, slots=True)
class StudentProfile:
    first_name: str
    last_name: str
    email: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


PLACEHOLDER_PROFILE = StudentProfile(first_name="Unknown", last_name="Student")


@dataclass(frozen=True, slots=True)
class RosterEntry:
    record: EnrollmentRecord
    profile: StudentProfile
    profile_resolved: bool = True
