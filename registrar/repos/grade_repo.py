from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from registrar.core.errors import ConflictOnWrite
from registrar.models.grade import GradeRecord


class GradeRepo(Protocol):
    async def get(self, grade_id: UUID) -> GradeRecord | None: ...
    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> GradeRecord | None: ...
    async def insert(self, grade: GradeRecord) -> None:
        """Insert a new grade; raise ConflictOnWrite if the pair exists."""
        ...

    async def update(self, grade: GradeRecord) -> GradeRecord | None:
        """Overwrite the mutable fields of an existing grade; None if gone."""
        ...

    async def delete(self, grade_id: UUID) -> bool: ...
    async def list_all(self) -> list[GradeRecord]: ...
    async def list_by_student(self, student_id: str) -> list[GradeRecord]: ...
    async def list_by_courses(self, course_ids: Iterable[str]) -> list[GradeRecord]: ...


class InMemoryGradeRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, GradeRecord] = {}

    async def get(self, grade_id: UUID) -> GradeRecord | None:
        return self._by_id.get(grade_id)

    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> GradeRecord | None:
        for g in self._by_id.values():
            if g.student_id == student_id and g.course_id == course_id:
                return g
        return None

    async def insert(self, grade: GradeRecord) -> None:
        if await self.get_by_student_course(grade.student_id, grade.course_id):
            raise ConflictOnWrite(
                f"grade for student={grade.student_id} "
                f"course={grade.course_id} already exists"
            )
        self._by_id[grade.id] = grade

    async def update(self, grade: GradeRecord) -> GradeRecord | None:
        if grade.id not in self._by_id:
            return None
        self._by_id[grade.id] = grade
        return grade

    async def delete(self, grade_id: UUID) -> bool:
        return self._by_id.pop(grade_id, None) is not None

    async def list_all(self) -> list[GradeRecord]:
        return sorted(self._by_id.values(), key=lambda g: g.submitted_at)

    async def list_by_student(self, student_id: str) -> list[GradeRecord]:
        return [g for g in await self.list_all() if g.student_id == student_id]

    async def list_by_courses(self, course_ids: Iterable[str]) -> list[GradeRecord]:
        wanted = set(course_ids)
        return [g for g in await self.list_all() if g.course_id in wanted]
