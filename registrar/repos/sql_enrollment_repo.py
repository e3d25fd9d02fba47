"""SQL implementation of EnrollmentRepo.

Each method runs in its own short transaction.  Uniqueness of
(student_id, course_id) is enforced by the database; an IntegrityError on
insert is surfaced as ConflictOnWrite.  State transitions are conditional
UPDATEs on the current status, so two concurrent transitions of the same
row cannot both succeed.
"""

from __future__ import annotations

import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from registrar.core.errors import ConflictOnWrite
from registrar.db.tables import EnrollmentRow
from registrar.models.enrollment import EnrollmentRecord, EnrollmentStatus


class SqlEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, record_id: UUID) -> EnrollmentRecord | None:
        async with self._session_factory() as session:
            row = await session.get(EnrollmentRow, record_id)
            return _row_to_record(row) if row is not None else None

    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> EnrollmentRecord | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_record(row) if row is not None else None

    async def insert(self, record: EnrollmentRecord) -> None:
        row = EnrollmentRow(
            id=record.id,
            student_id=record.student_id,
            course_id=record.course_id,
            status=record.status.value,
            enrollment_date=record.enrollment_date,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(row)
        except IntegrityError as e:
            raise ConflictOnWrite(
                f"enrollment for student={record.student_id} "
                f"course={record.course_id} already exists"
            ) from e

    async def reactivate(
        self, record_id: UUID, now: datetime.datetime
    ) -> EnrollmentRecord | None:
        return await self._transition(
            record_id,
            expected=EnrollmentStatus.DROPPED,
            values={"status": EnrollmentStatus.ENROLLED.value, "enrollment_date": now},
        )

    async def mark_dropped(self, record_id: UUID) -> EnrollmentRecord | None:
        return await self._transition(
            record_id,
            expected=EnrollmentStatus.ENROLLED,
            values={"status": EnrollmentStatus.DROPPED.value},
        )

    async def _transition(
        self, record_id: UUID, *, expected: EnrollmentStatus, values: dict
    ) -> EnrollmentRecord | None:
        stmt = (
            update(EnrollmentRow)
            .where(
                EnrollmentRow.id == record_id,
                EnrollmentRow.status == expected.value,
            )
            .values(**values)
        )
        async with self._session_factory() as session, session.begin():
            result = await session.execute(stmt)
            if result.rowcount == 0:
                return None
            row = (
                await session.execute(
                    select(EnrollmentRow).where(EnrollmentRow.id == record_id)
                )
            ).scalar_one()
            return _row_to_record(row)

    async def list_by_student(self, student_id: str) -> list[EnrollmentRecord]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.enrollment_date.desc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_record(r) for r in rows]

    async def list_enrolled_by_course(self, course_id: str) -> list[EnrollmentRecord]:
        stmt = (
            select(EnrollmentRow)
            .where(
                EnrollmentRow.course_id == course_id,
                EnrollmentRow.status == EnrollmentStatus.ENROLLED.value,
            )
            .order_by(EnrollmentRow.enrollment_date.asc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_record(r) for r in rows]

    async def count_enrolled(self, course_id: str) -> int:
        stmt = select(func.count()).where(
            EnrollmentRow.course_id == course_id,
            EnrollmentRow.status == EnrollmentStatus.ENROLLED.value,
        )
        async with self._session_factory() as session:
            return (await session.execute(stmt)).scalar_one()


def _aware(value: datetime.datetime) -> datetime.datetime:
    # SQLite drops tzinfo on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


def _row_to_record(row: EnrollmentRow) -> EnrollmentRecord:
    return EnrollmentRecord(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        status=EnrollmentStatus(row.status),
        enrollment_date=_aware(row.enrollment_date),
    )
