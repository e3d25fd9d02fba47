"""SQL implementation of GradeRepo."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from registrar.core.errors import ConflictOnWrite
from registrar.db.tables import GradeRow
from registrar.models.grade import GradeRecord


class SqlGradeRepo:
    """Satisfies the GradeRepo Protocol using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, grade_id: UUID) -> GradeRecord | None:
        async with self._session_factory() as session:
            row = await session.get(GradeRow, grade_id)
            return _row_to_grade(row) if row is not None else None

    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> GradeRecord | None:
        stmt = select(GradeRow).where(
            GradeRow.student_id == student_id, GradeRow.course_id == course_id
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_grade(row) if row is not None else None

    async def insert(self, grade: GradeRecord) -> None:
        row = GradeRow(
            id=grade.id,
            student_id=grade.student_id,
            course_id=grade.course_id,
            score=grade.score,
            derived_grade=grade.derived_grade,
            letter_grade=grade.letter_grade,
            comments=grade.comments,
            submitted_by=grade.submitted_by,
            submitted_at=grade.submitted_at,
            last_updated=grade.last_updated,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
        except IntegrityError as e:
            raise ConflictOnWrite(
                f"grade for student={grade.student_id} "
                f"course={grade.course_id} already exists"
            ) from e

    async def update(self, grade: GradeRecord) -> GradeRecord | None:
        stmt = (
            update(GradeRow)
            .where(GradeRow.id == grade.id)
            .values(
                score=grade.score,
                derived_grade=grade.derived_grade,
                letter_grade=grade.letter_grade,
                comments=grade.comments,
                submitted_by=grade.submitted_by,
                last_updated=grade.last_updated,
            )
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            if result.rowcount == 0:
                return None
        return grade

    async def delete(self, grade_id: UUID) -> bool:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(GradeRow).where(GradeRow.id == grade_id))
            return result.rowcount > 0

    async def list_all(self) -> list[GradeRecord]:
        return await self._list(select(GradeRow))

    async def list_by_student(self, student_id: str) -> list[GradeRecord]:
        return await self._list(select(GradeRow).where(GradeRow.student_id == student_id))

    async def list_by_courses(self, course_ids: Iterable[str]) -> list[GradeRecord]:
        wanted = list(course_ids)
        if not wanted:
            return []
        return await self._list(select(GradeRow).where(GradeRow.course_id.in_(wanted)))

    async def _list(self, stmt) -> list[GradeRecord]:
        async with self._session_factory() as session:
            rows = (
                (await session.execute(stmt.order_by(GradeRow.submitted_at)))
                .scalars()
                .all()
            )
            return [_row_to_grade(r) for r in rows]


def _aware(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


def _row_to_grade(row: GradeRow) -> GradeRecord:
    return GradeRecord(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        score=row.score,
        derived_grade=row.derived_grade,
        letter_grade=row.letter_grade,
        comments=row.comments or "",
        submitted_by=row.submitted_by,
        submitted_at=_aware(row.submitted_at),
        last_updated=_aware(row.last_updated),
    )
