"""Grading gate: authorize against Catalog and Ledger, then store grades.

submit_grade runs its checks in a fixed order and stops at the first
failure:

  1. caller is faculty (or admin)
  2. Catalog: caller is the course's instructor    → NotAuthorized
  3. Ledger: student currently enrolled            → StudentNotEnrolled
  4. score is a number in [0, 100]                 → InvalidScore

Checks 2 and 3 are live calls made with the caller's credential.  If
either dependency cannot be reached the submission fails with
DependencyUnavailable; it is never treated as a denial and never
retried here.

Faculty grade views are scoped by the set of courses the Catalog reports
them as teaching, filtered locally against the grade table.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from uuid import UUID

from registrar.clients.catalog import CatalogClient
from registrar.clients.identity import IdentityClient
from registrar.clients.ledger import LedgerClient
from registrar.core.errors import (
    ConflictOnWrite,
    GradeNotFound,
    InvalidScore,
    NotAuthorized,
    RegistrarError,
    StudentNotEnrolled,
    require_ref,
)
from registrar.core.metrics import ENRICHMENT_FALLBACKS, GRADE_WRITES
from registrar.models.course import Course
from registrar.models.enrollment import StudentProfile
from registrar.models.grade import GradeRecord, GradeView
from registrar.models.principal import Principal
from registrar.repos.grade_repo import GradeRepo
from registrar.services import grade_scale

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class GradingService:
    def __init__(
        self,
        repo: GradeRepo,
        catalog: CatalogClient,
        identity: IdentityClient,
        ledger: LedgerClient,
        *,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._repo = repo
        self._catalog = catalog
        self._identity = identity
        self._ledger = ledger
        self._clock = clock

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    async def submit_grade(
        self,
        principal: Principal,
        student_id: str,
        course_id: str,
        score: object,
        comments: str | None = None,
    ) -> tuple[GradeRecord, bool]:
        """Create or update the grade for (student_id, course_id).

        Returns (record, created).
        """
        if not (principal.is_faculty or principal.is_admin):
            raise NotAuthorized("only faculty may submit grades")
        student_id = require_ref(student_id, "studentId")
        course_id = require_ref(course_id, "courseId")

        await self._authorize_course(principal, course_id)

        if not await self._ledger.is_enrolled(
            student_id, course_id, credential=principal.credential
        ):
            logger.info(
                "Grade rejected: student=%s not enrolled in course=%s",
                student_id,
                course_id,
            )
            raise StudentNotEnrolled(
                f"student {student_id!r} is not enrolled in course {course_id!r}"
            )

        if not grade_scale.is_valid_score(score):
            raise InvalidScore(f"score must be a number between 0 and 100 (got {score!r})")
        value = float(score)  # type: ignore[arg-type]

        now = self._clock()
        fields = {
            "score": value,
            "derived_grade": grade_scale.derived_grade(value),
            "letter_grade": grade_scale.letter_grade(value),
            "comments": comments or "",
            "submitted_by": principal.id,
            "last_updated": now,
        }

        existing = await self._repo.get_by_student_course(student_id, course_id)
        if existing is None:
            record = GradeRecord.new(
                student_id=student_id,
                course_id=course_id,
                now=now,
                **{k: v for k, v in fields.items() if k != "last_updated"},
            )
            try:
                await self._repo.insert(record)
            except ConflictOnWrite:
                # A concurrent submission created the row; ours becomes the update.
                existing = await self._repo.get_by_student_course(student_id, course_id)
                if existing is None:
                    raise
            else:
                GRADE_WRITES.labels(operation="create").inc()
                logger.info(
                    "Grade created id=%s student=%s course=%s by=%s",
                    record.id,
                    student_id,
                    course_id,
                    principal.id,
                )
                return record, True

        updated = await self._repo.update(replace(existing, **fields))
        if updated is None:
            raise ConflictOnWrite(
                f"grade for student={student_id} course={course_id} was deleted concurrently"
            )
        GRADE_WRITES.labels(operation="update").inc()
        logger.info(
            "Grade updated id=%s student=%s course=%s by=%s",
            updated.id,
            student_id,
            course_id,
            principal.id,
        )
        return updated, False

    async def delete_grade(self, principal: Principal, grade_id: UUID) -> None:
        record = await self._repo.get(grade_id)
        if record is None:
            raise GradeNotFound(f"grade {grade_id} not found")
        if record.submitted_by != principal.id:
            logger.warning(
                "Grade delete denied: user=%s submitter=%s grade=%s",
                principal.id,
                record.submitted_by,
                grade_id,
            )
            raise NotAuthorized("only the submitting instructor may delete this grade")
        if not await self._repo.delete(grade_id):
            raise GradeNotFound(f"grade {grade_id} not found")
        GRADE_WRITES.labels(operation="delete").inc()
        logger.info("Grade deleted id=%s by=%s", grade_id, principal.id)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get_grades(self, principal: Principal) -> list[GradeView]:
        """Grades visible to the caller, enriched with display data."""
        if principal.is_student:
            grades = await self._repo.list_by_student(principal.id)
            return await self._enrich(principal, grades)
        if principal.is_faculty:
            courses = await self._taught_courses(principal)
            grades = await self._repo.list_by_courses(courses)
            return await self._enrich(principal, grades, known_courses=courses)
        return await self._enrich(principal, await self._repo.list_all())

    async def grades_for_student(
        self, principal: Principal, student_id: str
    ) -> list[GradeView]:
        student_id = require_ref(student_id, "studentId")
        if principal.is_student:
            if principal.id != student_id:
                raise NotAuthorized("students may only view their own grades")
            return await self._enrich(principal, await self._repo.list_by_student(student_id))

        grades = await self._repo.list_by_student(student_id)
        if principal.is_faculty:
            courses = await self._taught_courses(principal)
            grades = [g for g in grades if g.course_id in courses]
            return await self._enrich(principal, grades, known_courses=courses)
        return await self._enrich(principal, grades)

    async def grades_for_course(
        self, principal: Principal, course_id: str
    ) -> list[GradeView]:
        course_id = require_ref(course_id, "courseId")
        if not (principal.is_faculty or principal.is_admin):
            raise NotAuthorized("course grade lists are visible to faculty and admins only")
        course = await self._authorize_course(principal, course_id)
        grades = await self._repo.list_by_courses([course_id])
        return await self._enrich(principal, grades, known_courses={course.id: course})

    async def grade_for_student_course(
        self, principal: Principal, student_id: str, course_id: str
    ) -> GradeView:
        student_id = require_ref(student_id, "studentId")
        course_id = require_ref(course_id, "courseId")
        known: dict[str, Course] = {}
        if principal.is_student:
            if principal.id != student_id:
                raise NotAuthorized("students may only view their own grades")
        elif principal.is_faculty:
            course = await self._authorize_course(principal, course_id)
            known[course.id] = course

        grade = await self._repo.get_by_student_course(student_id, course_id)
        if grade is None:
            raise GradeNotFound(
                f"no grade for student {student_id!r} in course {course_id!r}"
            )
        (view,) = await self._enrich(principal, [grade], known_courses=known)
        return view

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _authorize_course(self, principal: Principal, course_id: str) -> Course:
        """Fetch the course; faculty must be its instructor."""
        course = await self._catalog.get_course(course_id, credential=principal.credential)
        if principal.is_faculty and not course.is_taught_by(principal.id):
            logger.warning(
                "Grade access denied: user=%s is not instructor of course=%s",
                principal.id,
                course_id,
            )
            raise NotAuthorized("only the course instructor may grade this course")
        return course

    async def _taught_courses(self, principal: Principal) -> dict[str, Course]:
        courses = await self._catalog.list_courses_by_instructor(
            principal.id, credential=principal.credential
        )
        return {c.id: c for c in courses}

    async def _enrich(
        self,
        principal: Principal,
        grades: Iterable[GradeRecord],
        *,
        known_courses: dict[str, Course] | None = None,
    ) -> list[GradeView]:
        grades = list(grades)
        courses: dict[str, Course | None] = dict(known_courses or {})

        # One lookup per distinct fact, fetched concurrently.
        missing_courses = sorted({g.course_id for g in grades} - courses.keys())
        student_ids = sorted({g.student_id for g in grades})
        course_results, profile_results = await asyncio.gather(
            asyncio.gather(*(self._try_course(principal, c) for c in missing_courses)),
            asyncio.gather(*(self._try_profile(principal, s) for s in student_ids)),
        )
        courses.update(zip(missing_courses, course_results, strict=True))
        profiles = dict(zip(student_ids, profile_results, strict=True))

        views = []
        for g in grades:
            course = courses.get(g.course_id)
            profile = profiles.get(g.student_id)
            views.append(
                GradeView(
                    grade=g,
                    course_code=course.code if course else None,
                    course_name=course.name if course else None,
                    student_name=profile.display_name if profile else None,
                    student_email=profile.email if profile else None,
                )
            )
        return views

    async def _try_course(self, principal: Principal, course_id: str) -> Course | None:
        try:
            return await self._catalog.get_course(course_id, credential=principal.credential)
        except RegistrarError as e:
            logger.warning("Course lookup failed for course=%s: %s", course_id, e.kind)
            ENRICHMENT_FALLBACKS.labels(dependency="catalog").inc()
            return None

    async def _try_profile(
        self, principal: Principal, student_id: str
    ) -> StudentProfile | None:
        try:
            return await self._identity.get_profile(
                student_id, credential=principal.credential
            )
        except RegistrarError as e:
            logger.warning("Profile lookup failed for student=%s: %s", student_id, e.kind)
            ENRICHMENT_FALLBACKS.labels(dependency="identity").inc()
            return None
