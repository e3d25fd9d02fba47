"""Enrollment ledger: the enroll / drop / re-enroll state machine.

State machine for one (student_id, course_id) pair::

    (none) ──enroll──▶ enrolled ──drop──▶ dropped
                          ▲                  │
                          └────re-enroll─────┘

    enroll on enrolled  → AlreadyEnrolled, no mutation
    drop on dropped     → returns the record unchanged

A pair has at most one record for its whole life.  Re-enrolling reuses the
dropped record (same id, fresh enrollment_date) instead of inserting a new
one, which is why a unique key over (student_id, course_id) alone is
enough.

Concurrency: the read that decides between "insert" and "reactivate" is
only a hint.  The write is what decides: an insert that hits the unique
key, or a reactivation whose conditional update matches no row, means a
concurrent request won, and the caller gets AlreadyEnrolled.

Capacity is not protected the same way.  count_enrolled followed by
insert/reactivate is check-then-write, so concurrent enrolls by different
students can each see a free seat and together push a course over its
capacity.  Nothing in the unique key prevents that.

Cross-service: every enroll fetches the course from the Catalog in the
request path.  There is no compensating action if the ledger write fails
after that check; the error propagates to the client as-is.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections.abc import Callable
from uuid import UUID

from registrar.clients.catalog import CatalogClient
from registrar.clients.identity import IdentityClient
from registrar.core.errors import (
    AlreadyEnrolled,
    ConflictOnWrite,
    CourseFull,
    CourseNotOpen,
    EnrollmentNotFound,
    NotAuthorized,
    RegistrarError,
    ValidationError,
    require_ref,
)
from registrar.core.metrics import ENRICHMENT_FALLBACKS, ENROLLMENT_TRANSITIONS
from registrar.models.enrollment import (
    PLACEHOLDER_PROFILE,
    EnrollmentRecord,
    EnrollmentStatus,
    RosterEntry,
)
from registrar.models.principal import Principal
from registrar.repos.enrollment_repo import EnrollmentRepo

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class LedgerService:
    def __init__(
        self,
        repo: EnrollmentRepo,
        catalog: CatalogClient,
        identity: IdentityClient,
        *,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._repo = repo
        self._catalog = catalog
        self._identity = identity
        self._clock = clock

    # ------------------------------------------------------------------
    # enroll
    # ------------------------------------------------------------------

    async def enroll(
        self, principal: Principal, course_id: str
    ) -> tuple[EnrollmentRecord, bool]:
        """Enroll the calling student.  Returns (record, created).

        ``created`` is False when a dropped record was reactivated.
        """
        course_id = require_ref(course_id, "courseId")
        course = await self._catalog.get_course(course_id, credential=principal.credential)
        if not course.is_open:
            logger.info(
                "Enroll rejected: course=%s status=%s", course_id, course.status
            )
            ENROLLMENT_TRANSITIONS.labels(transition="rejected").inc()
            raise CourseNotOpen(f"course {course_id!r} is not open for enrollment")

        existing = await self._repo.get_by_student_course(principal.id, course_id)
        if existing is not None and existing.is_enrolled:
            ENROLLMENT_TRANSITIONS.labels(transition="rejected").inc()
            raise AlreadyEnrolled(
                f"student {principal.id!r} is already enrolled in course {course_id!r}"
            )

        # Capacity comes from the ledger's own count.  The Catalog's
        # enrolledCount is a separately maintained counter that drifts.
        if course.capacity:
            enrolled = await self._repo.count_enrolled(course_id)
            if enrolled >= course.capacity:
                logger.info(
                    "Enroll rejected: course=%s full (%d/%d)",
                    course_id,
                    enrolled,
                    course.capacity,
                )
                ENROLLMENT_TRANSITIONS.labels(transition="rejected").inc()
                raise CourseFull(f"course {course_id!r} is full")

        now = self._clock()
        if existing is None:
            record = EnrollmentRecord.new(
                student_id=principal.id, course_id=course_id, now=now
            )
            try:
                await self._repo.insert(record)
            except ConflictOnWrite:
                logger.info(
                    "Concurrent enroll lost the insert race: student=%s course=%s",
                    principal.id,
                    course_id,
                )
                ENROLLMENT_TRANSITIONS.labels(transition="rejected").inc()
                raise AlreadyEnrolled(
                    f"student {principal.id!r} is already enrolled in course {course_id!r}"
                ) from None
            ENROLLMENT_TRANSITIONS.labels(transition="enroll").inc()
            logger.info(
                "Enrolled student=%s course=%s id=%s", principal.id, course_id, record.id
            )
            return record, True

        reactivated = await self._repo.reactivate(existing.id, now)
        if reactivated is None:
            # Someone else re-enrolled this pair between our read and write.
            ENROLLMENT_TRANSITIONS.labels(transition="rejected").inc()
            raise AlreadyEnrolled(
                f"student {principal.id!r} is already enrolled in course {course_id!r}"
            )
        ENROLLMENT_TRANSITIONS.labels(transition="re_enroll").inc()
        logger.info(
            "Re-enrolled student=%s course=%s id=%s",
            principal.id,
            course_id,
            reactivated.id,
        )
        return reactivated, False

    # ------------------------------------------------------------------
    # drop
    # ------------------------------------------------------------------

    async def drop(
        self,
        principal: Principal,
        *,
        enrollment_id: UUID | None = None,
        course_id: str | None = None,
    ) -> EnrollmentRecord:
        """Drop one of the caller's enrollments, by record id or course id."""
        if (enrollment_id is None) == (course_id is None):
            raise ValidationError("exactly one of enrollmentId or courseId is required")

        if enrollment_id is not None:
            record = await self._repo.get(enrollment_id)
            ref = f"id={enrollment_id}"
        else:
            course_id = require_ref(course_id, "courseId")
            record = await self._repo.get_by_student_course(principal.id, course_id)
            ref = f"course={course_id}"
        if record is None:
            raise EnrollmentNotFound(f"no enrollment found for {ref}")

        if record.student_id != principal.id:
            logger.warning(
                "Drop denied: user=%s does not own enrollment=%s",
                principal.id,
                record.id,
            )
            raise NotAuthorized("only the enrolled student may drop this enrollment")

        if record.status == EnrollmentStatus.DROPPED:
            ENROLLMENT_TRANSITIONS.labels(transition="drop_noop").inc()
            return record

        dropped = await self._repo.mark_dropped(record.id)
        if dropped is None:
            # A concurrent drop got there first; report the settled state.
            current = await self._repo.get(record.id)
            if current is None:
                raise EnrollmentNotFound(f"no enrollment found for {ref}")
            ENROLLMENT_TRANSITIONS.labels(transition="drop_noop").inc()
            return current

        ENROLLMENT_TRANSITIONS.labels(transition="drop").inc()
        logger.info(
            "Dropped student=%s course=%s id=%s",
            dropped.student_id,
            dropped.course_id,
            dropped.id,
        )
        return dropped

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    async def list_for_principal(self, principal: Principal) -> list[EnrollmentRecord]:
        """All of a student's records, any status, most recent first."""
        if not principal.is_student:
            raise NotAuthorized("enrollment listing is scoped to students")
        return await self._repo.list_by_student(principal.id)

    async def list_by_course(
        self, principal: Principal, course_id: str
    ) -> list[RosterEntry]:
        """Roster of enrolled students, each enriched with a profile.

        Faculty must be the course's instructor.  A failed profile lookup
        degrades that row to a placeholder; it never fails the roster.
        """
        course_id = require_ref(course_id, "courseId")
        if not (principal.is_faculty or principal.is_admin):
            raise NotAuthorized("rosters are visible to faculty and admins only")

        course = await self._catalog.get_course(course_id, credential=principal.credential)
        if principal.is_faculty and not course.is_taught_by(principal.id):
            logger.warning(
                "Roster denied: user=%s is not instructor of course=%s",
                principal.id,
                course_id,
            )
            raise NotAuthorized("only the course instructor may view this roster")

        records = await self._repo.list_enrolled_by_course(course_id)
        return list(
            await asyncio.gather(*(self._roster_entry(principal, r) for r in records))
        )

    async def _roster_entry(
        self, principal: Principal, record: EnrollmentRecord
    ) -> RosterEntry:
        try:
            profile = await self._identity.get_profile(
                record.student_id, credential=principal.credential
            )
        except RegistrarError as e:
            logger.warning(
                "Profile lookup failed for student=%s, using placeholder: %s",
                record.student_id,
                e.kind,
            )
            ENRICHMENT_FALLBACKS.labels(dependency="identity").inc()
            return RosterEntry(
                record=record, profile=PLACEHOLDER_PROFILE, profile_resolved=False
            )
        return RosterEntry(record=record, profile=profile)

    async def check_enrollment(
        self, principal: Principal, student_id: str, course_id: str
    ) -> bool:
        """True only for a currently enrolled (not dropped) record."""
        student_id = require_ref(student_id, "studentId")
        course_id = require_ref(course_id, "courseId")
        if principal.is_student and principal.id != student_id:
            raise NotAuthorized("students may only check their own enrollment")
        record = await self._repo.get_by_student_course(student_id, course_id)
        return record is not None and record.is_enrolled
