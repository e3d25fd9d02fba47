"""SQL repositories against a throwaway SQLite database (aiosqlite)."""

from __future__ import annotations

import asyncio
import datetime
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import registrar.db.tables  # noqa: F401
from registrar.core.errors import ConflictOnWrite
from registrar.db.engine import Base, build_engine, build_session_factory
from registrar.models.enrollment import EnrollmentRecord, EnrollmentStatus
from registrar.models.grade import GradeRecord
from registrar.repos.sql_enrollment_repo import SqlEnrollmentRepo
from registrar.repos.sql_grade_repo import SqlGradeRepo

T0 = datetime.datetime(2026, 9, 1, 9, 0, tzinfo=datetime.UTC)

Scenario = Callable[[async_sessionmaker[AsyncSession]], Awaitable[None]]


def _run(tmp_path: Path, scenario: Scenario) -> None:
    """Run one scenario on a fresh schema, inside a single event loop."""

    async def main() -> None:
        engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'registrar.db'}")
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            await scenario(build_session_factory(engine))
        finally:
            await engine.dispose()

    asyncio.run(main())


def _grade(student_id: str, course_id: str, score: float, now=T0) -> GradeRecord:
    return GradeRecord.new(
        student_id=student_id,
        course_id=course_id,
        score=score,
        derived_grade=3.0,
        letter_grade="B+",
        comments="",
        submitted_by="prof-1",
        now=now,
    )


# ---- enrollments ----


def test_enrollment_insert_and_lookup(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlEnrollmentRepo(factory)
        record = EnrollmentRecord.new(student_id="s1", course_id="CS101", now=T0)
        await repo.insert(record)

        assert await repo.get(record.id) == record
        assert await repo.get_by_student_course("s1", "CS101") == record
        assert await repo.get_by_student_course("s1", "CS999") is None

    _run(tmp_path, scenario)


def test_enrollment_unique_pair(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlEnrollmentRepo(factory)
        await repo.insert(EnrollmentRecord.new(student_id="s1", course_id="CS101", now=T0))
        with pytest.raises(ConflictOnWrite):
            await repo.insert(
                EnrollmentRecord.new(student_id="s1", course_id="CS101", now=T0)
            )

    _run(tmp_path, scenario)


def test_enrollment_transitions_are_conditional(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlEnrollmentRepo(factory)
        record = EnrollmentRecord.new(student_id="s1", course_id="CS101", now=T0)
        await repo.insert(record)

        # Only a dropped record can be reactivated.
        assert await repo.reactivate(record.id, T0) is None

        dropped = await repo.mark_dropped(record.id)
        assert dropped is not None
        assert dropped.status == EnrollmentStatus.DROPPED
        assert await repo.mark_dropped(record.id) is None

        later = T0 + datetime.timedelta(days=3)
        again = await repo.reactivate(record.id, later)
        assert again is not None
        assert again.id == record.id
        assert again.status == EnrollmentStatus.ENROLLED
        assert again.enrollment_date == later

    _run(tmp_path, scenario)


def test_enrollment_listings_and_count(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlEnrollmentRepo(factory)
        a = EnrollmentRecord.new(student_id="s1", course_id="CS101", now=T0)
        b = EnrollmentRecord.new(
            student_id="s1", course_id="CS201", now=T0 + datetime.timedelta(hours=1)
        )
        c = EnrollmentRecord.new(
            student_id="s2", course_id="CS101", now=T0 + datetime.timedelta(hours=2)
        )
        for record in (a, b, c):
            await repo.insert(record)
        await repo.mark_dropped(c.id)

        assert [r.id for r in await repo.list_by_student("s1")] == [b.id, a.id]
        assert [r.id for r in await repo.list_enrolled_by_course("CS101")] == [a.id]
        assert await repo.count_enrolled("CS101") == 1
        assert await repo.count_enrolled("CS999") == 0

    _run(tmp_path, scenario)


def test_enrollment_dates_come_back_timezone_aware(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlEnrollmentRepo(factory)
        record = EnrollmentRecord.new(student_id="s1", course_id="CS101", now=T0)
        await repo.insert(record)
        loaded = await repo.get(record.id)
        assert loaded is not None
        assert loaded.enrollment_date.tzinfo is not None

    _run(tmp_path, scenario)


# ---- grades ----


def test_grade_insert_update_delete(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlGradeRepo(factory)
        grade = _grade("s1", "CS101", 85)
        await repo.insert(grade)
        assert await repo.get_by_student_course("s1", "CS101") == grade

        later = T0 + datetime.timedelta(days=1)
        changed = GradeRecord(
            id=grade.id,
            student_id="s1",
            course_id="CS101",
            score=96,
            derived_grade=4.0,
            letter_grade="A",
            comments="regraded",
            submitted_by="prof-1",
            submitted_at=grade.submitted_at,
            last_updated=later,
        )
        assert await repo.update(changed) == changed
        loaded = await repo.get(grade.id)
        assert loaded is not None
        assert loaded.score == 96
        assert loaded.submitted_at == T0
        assert loaded.last_updated == later

        assert await repo.delete(grade.id) is True
        assert await repo.delete(grade.id) is False
        assert await repo.update(changed) is None

    _run(tmp_path, scenario)


def test_grade_unique_pair(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlGradeRepo(factory)
        await repo.insert(_grade("s1", "CS101", 85))
        with pytest.raises(ConflictOnWrite):
            await repo.insert(_grade("s1", "CS101", 70))

    _run(tmp_path, scenario)


def test_grade_listings(tmp_path: Path) -> None:
    async def scenario(factory) -> None:
        repo = SqlGradeRepo(factory)
        g1 = _grade("s1", "CS101", 85)
        g2 = _grade("s2", "CS101", 70, now=T0 + datetime.timedelta(minutes=1))
        g3 = _grade("s1", "CS201", 90, now=T0 + datetime.timedelta(minutes=2))
        for g in (g1, g2, g3):
            await repo.insert(g)

        assert [g.id for g in await repo.list_all()] == [g1.id, g2.id, g3.id]
        assert [g.id for g in await repo.list_by_student("s1")] == [g1.id, g3.id]
        assert [g.id for g in await repo.list_by_courses(["CS101"])] == [g1.id, g2.id]
        assert await repo.list_by_courses([]) == []

    _run(tmp_path, scenario)
