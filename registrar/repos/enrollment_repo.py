from __future__ import annotations

import datetime
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from registrar.core.errors import ConflictOnWrite
from registrar.models.enrollment import EnrollmentRecord, EnrollmentStatus


class EnrollmentRepo(Protocol):
    async def get(self, record_id: UUID) -> EnrollmentRecord | None: ...
    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> EnrollmentRecord | None: ...
    async def insert(self, record: EnrollmentRecord) -> None:
        """Insert a new record; raise ConflictOnWrite if the pair exists."""
        ...

    async def reactivate(
        self, record_id: UUID, now: datetime.datetime
    ) -> EnrollmentRecord | None:
        """dropped → enrolled with a fresh date; None if the record was not dropped."""
        ...

    async def mark_dropped(self, record_id: UUID) -> EnrollmentRecord | None:
        """enrolled → dropped; None if the record was not enrolled."""
        ...

    async def list_by_student(self, student_id: str) -> list[EnrollmentRecord]: ...
    async def list_enrolled_by_course(
        self, course_id: str
    ) -> list[EnrollmentRecord]: ...
    async def count_enrolled(self, course_id: str) -> int: ...


class InMemoryEnrollmentRepo:
    """Dict-backed ledger.

    Methods never await between reading and writing, so each one is atomic
    with respect to other coroutines on the event loop, which gives the same
    guarantees as the unique constraint and conditional updates of the SQL
    repo.
    """

    def __init__(self) -> None:
        self._by_key: dict[tuple[str, str], EnrollmentRecord] = {}
        self._by_id: dict[UUID, EnrollmentRecord] = {}

    def _store(self, record: EnrollmentRecord) -> EnrollmentRecord:
        self._by_key[(record.student_id, record.course_id)] = record
        self._by_id[record.id] = record
        return record

    async def get(self, record_id: UUID) -> EnrollmentRecord | None:
        return self._by_id.get(record_id)

    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> EnrollmentRecord | None:
        return self._by_key.get((student_id, course_id))

    async def insert(self, record: EnrollmentRecord) -> None:
        if (record.student_id, record.course_id) in self._by_key:
            raise ConflictOnWrite(
                f"enrollment for student={record.student_id} "
                f"course={record.course_id} already exists"
            )
        self._store(record)

    async def reactivate(
        self, record_id: UUID, now: datetime.datetime
    ) -> EnrollmentRecord | None:
        current = self._by_id.get(record_id)
        if current is None or current.status != EnrollmentStatus.DROPPED:
            return None
        return self._store(
            replace(current, status=EnrollmentStatus.ENROLLED, enrollment_date=now)
        )

    async def mark_dropped(self, record_id: UUID) -> EnrollmentRecord | None:
        current = self._by_id.get(record_id)
        if current is None or current.status != EnrollmentStatus.ENROLLED:
            return None
        return self._store(replace(current, status=EnrollmentStatus.DROPPED))

    async def list_by_student(self, student_id: str) -> list[EnrollmentRecord]:
        records = [r for r in self._by_id.values() if r.student_id == student_id]
        return sorted(records, key=lambda r: r.enrollment_date, reverse=True)

    async def list_enrolled_by_course(self, course_id: str) -> list[EnrollmentRecord]:
        records = [
            r for r in self._by_id.values() if r.course_id == course_id and r.is_enrolled
        ]
        return sorted(records, key=lambda r: r.enrollment_date)

    async def count_enrolled(self, course_id: str) -> int:
        return sum(
            1 for r in self._by_id.values() if r.course_id == course_id and r.is_enrolled
        )
