"""Enrollment state machine, ownership and roster enrichment."""

from __future__ import annotations

import asyncio
import datetime

import pytest

from registrar.clients.catalog import CatalogClient
from registrar.clients.identity import IdentityClient
from registrar.core.errors import (
    AlreadyEnrolled,
    CourseFull,
    CourseNotFound,
    CourseNotOpen,
    DependencyUnavailable,
    EnrollmentNotFound,
    NotAuthorized,
    ValidationError,
)
from registrar.models.enrollment import EnrollmentRecord, EnrollmentStatus
from registrar.repos.enrollment_repo import InMemoryEnrollmentRepo
from registrar.services.ledger_service import LedgerService
from tests.conftest import (
    OTHER_PROF_ID,
    OTHER_STUDENT_ID,
    PROF_ID,
    STUDENT_ID,
    FakeUpstreams,
    principal,
)

STUDENT = principal(STUDENT_ID, "student")
OTHER_STUDENT = principal(OTHER_STUDENT_ID, "student")
PROF = principal(PROF_ID, "faculty")
OTHER_PROF = principal(OTHER_PROF_ID, "faculty")
ADMIN = principal("admin-1", "admin")


class _Clock:
    """Advances one minute per call so ordering by date is deterministic."""

    def __init__(self) -> None:
        self.now = datetime.datetime(2026, 9, 1, 9, 0, tzinfo=datetime.UTC)

    def __call__(self) -> datetime.datetime:
        self.now += datetime.timedelta(minutes=1)
        return self.now


class _YieldingRepo(InMemoryEnrollmentRepo):
    """Suspends after the existence check so two enrolls both see 'no record'."""

    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> EnrollmentRecord | None:
        record = await super().get_by_student_course(student_id, course_id)
        await asyncio.sleep(0)
        return record


@pytest.fixture
def repo() -> InMemoryEnrollmentRepo:
    return InMemoryEnrollmentRepo()


@pytest.fixture
def service(
    repo: InMemoryEnrollmentRepo, catalog: CatalogClient, identity: IdentityClient
) -> LedgerService:
    return LedgerService(repo, catalog, identity, clock=_Clock())


# ---- enroll ----


def test_enroll_creates_enrolled_record(service: LedgerService) -> None:
    record, created = asyncio.run(service.enroll(STUDENT, "CS101"))
    assert created is True
    assert record.student_id == STUDENT_ID
    assert record.course_id == "CS101"
    assert record.status == EnrollmentStatus.ENROLLED


def test_enroll_twice_is_rejected_without_mutation(
    service: LedgerService, repo: InMemoryEnrollmentRepo
) -> None:
    first, _ = asyncio.run(service.enroll(STUDENT, "CS101"))
    with pytest.raises(AlreadyEnrolled):
        asyncio.run(service.enroll(STUDENT, "CS101"))
    assert asyncio.run(repo.get(first.id)) == first
    assert asyncio.run(repo.count_enrolled("CS101")) == 1


def test_reenroll_after_drop_reuses_record(service: LedgerService) -> None:
    async def scenario():
        first, _ = await service.enroll(STUDENT, "CS101")
        await service.drop(STUDENT, course_id="CS101")
        again, created = await service.enroll(STUDENT, "CS101")
        return first, again, created

    first, again, created = asyncio.run(scenario())
    assert created is False
    assert again.id == first.id
    assert again.status == EnrollmentStatus.ENROLLED
    assert again.enrollment_date > first.enrollment_date


def test_enroll_blank_course_id_is_validation_error(service: LedgerService) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(service.enroll(STUDENT, "   "))


def test_enroll_unknown_course(service: LedgerService) -> None:
    with pytest.raises(CourseNotFound):
        asyncio.run(service.enroll(STUDENT, "NOPE"))


def test_enroll_closed_course(service: LedgerService) -> None:
    with pytest.raises(CourseNotOpen):
        asyncio.run(service.enroll(STUDENT, "CS102"))


def test_enroll_full_course_counts_only_enrolled(service: LedgerService) -> None:
    asyncio.run(service.enroll(STUDENT, "CS201"))
    with pytest.raises(CourseFull):
        asyncio.run(service.enroll(OTHER_STUDENT, "CS201"))

    # A dropped seat is free again.
    asyncio.run(service.drop(STUDENT, course_id="CS201"))
    record, created = asyncio.run(service.enroll(OTHER_STUDENT, "CS201"))
    assert created is True
    assert record.student_id == OTHER_STUDENT_ID


def test_enroll_ignores_catalog_enrolled_count(
    service: LedgerService, upstreams: FakeUpstreams
) -> None:
    upstreams.courses["CS201"]["enrolledCount"] = 99
    _, created = asyncio.run(service.enroll(STUDENT, "CS201"))
    assert created is True


@pytest.mark.parametrize("mode", ["timeout", "down", "error", "rejected", "malformed"])
def test_enroll_catalog_failure_is_unavailable_and_writes_nothing(
    service: LedgerService,
    repo: InMemoryEnrollmentRepo,
    upstreams: FakeUpstreams,
    mode: str,
) -> None:
    upstreams.fail("catalog", mode)
    with pytest.raises(DependencyUnavailable) as exc_info:
        asyncio.run(service.enroll(STUDENT, "CS101"))
    assert exc_info.value.dependency == "catalog"
    assert asyncio.run(repo.get_by_student_course(STUDENT_ID, "CS101")) is None


def test_enroll_forwards_caller_credential(
    service: LedgerService, upstreams: FakeUpstreams
) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    (call,) = upstreams.calls_to("catalog")
    assert call.headers["authorization"] == f"Bearer {STUDENT.credential}"


def test_concurrent_enrolls_produce_one_record(
    catalog: CatalogClient, identity: IdentityClient
) -> None:
    repo = _YieldingRepo()
    service = LedgerService(repo, catalog, identity, clock=_Clock())

    async def race():
        return await asyncio.gather(
            service.enroll(STUDENT, "CS101"),
            service.enroll(STUDENT, "CS101"),
            return_exceptions=True,
        )

    results = asyncio.run(race())
    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadyEnrolled)
    assert asyncio.run(repo.count_enrolled("CS101")) == 1


class _StaleReadRepo(InMemoryEnrollmentRepo):
    """Answers the existence check with ``stale`` when it is set."""

    stale: EnrollmentRecord | None = None

    async def get_by_student_course(
        self, student_id: str, course_id: str
    ) -> EnrollmentRecord | None:
        if self.stale is not None:
            return self.stale
        return await super().get_by_student_course(student_id, course_id)


def test_reenroll_losing_reactivation_race_is_already_enrolled(
    catalog: CatalogClient, identity: IdentityClient
) -> None:
    repo = _StaleReadRepo()
    service = LedgerService(repo, catalog, identity, clock=_Clock())

    async def scenario():
        await service.enroll(STUDENT, "CS101")
        dropped = await service.drop(STUDENT, course_id="CS101")
        winner, _ = await service.enroll(STUDENT, "CS101")
        # A concurrent request read the record while it was still dropped.
        repo.stale = dropped
        with pytest.raises(AlreadyEnrolled):
            await service.enroll(STUDENT, "CS101")
        return winner

    winner = asyncio.run(scenario())
    assert asyncio.run(repo.get(winner.id)) == winner
    assert asyncio.run(repo.count_enrolled("CS101")) == 1


# ---- drop ----


def test_drop_by_course_id(service: LedgerService) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    dropped = asyncio.run(service.drop(STUDENT, course_id="CS101"))
    assert dropped.status == EnrollmentStatus.DROPPED


def test_drop_by_enrollment_id(service: LedgerService) -> None:
    record, _ = asyncio.run(service.enroll(STUDENT, "CS101"))
    dropped = asyncio.run(service.drop(STUDENT, enrollment_id=record.id))
    assert dropped.id == record.id
    assert dropped.status == EnrollmentStatus.DROPPED


def test_drop_is_idempotent(service: LedgerService) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    first = asyncio.run(service.drop(STUDENT, course_id="CS101"))
    second = asyncio.run(service.drop(STUDENT, course_id="CS101"))
    assert second == first


def test_drop_requires_exactly_one_reference(service: LedgerService) -> None:
    record, _ = asyncio.run(service.enroll(STUDENT, "CS101"))
    with pytest.raises(ValidationError):
        asyncio.run(service.drop(STUDENT))
    with pytest.raises(ValidationError):
        asyncio.run(service.drop(STUDENT, enrollment_id=record.id, course_id="CS101"))


def test_drop_unknown_enrollment(service: LedgerService) -> None:
    with pytest.raises(EnrollmentNotFound):
        asyncio.run(service.drop(STUDENT, course_id="CS101"))


def test_drop_someone_elses_enrollment(service: LedgerService) -> None:
    record, _ = asyncio.run(service.enroll(STUDENT, "CS101"))
    with pytest.raises(NotAuthorized):
        asyncio.run(service.drop(OTHER_STUDENT, enrollment_id=record.id))


def test_drop_does_not_call_catalog(
    service: LedgerService, upstreams: FakeUpstreams
) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    upstreams.fail("catalog", "down")
    dropped = asyncio.run(service.drop(STUDENT, course_id="CS101"))
    assert dropped.status == EnrollmentStatus.DROPPED


# ---- queries ----


def test_list_for_principal_newest_first_any_status(service: LedgerService) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    asyncio.run(service.enroll(STUDENT, "CS201"))
    asyncio.run(service.drop(STUDENT, course_id="CS101"))

    records = asyncio.run(service.list_for_principal(STUDENT))
    assert [r.course_id for r in records] == ["CS201", "CS101"]
    assert records[1].status == EnrollmentStatus.DROPPED


def test_list_for_principal_rejects_faculty(service: LedgerService) -> None:
    with pytest.raises(NotAuthorized):
        asyncio.run(service.list_for_principal(PROF))


def test_roster_lists_only_enrolled_with_profiles(service: LedgerService) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    asyncio.run(service.enroll(OTHER_STUDENT, "CS101"))
    asyncio.run(service.drop(OTHER_STUDENT, course_id="CS101"))

    roster = asyncio.run(service.list_by_course(PROF, "CS101"))
    assert [e.record.student_id for e in roster] == [STUDENT_ID]
    assert roster[0].profile.display_name == "Ada Lovelace"
    assert roster[0].profile_resolved is True


def test_roster_denied_to_other_instructor(service: LedgerService) -> None:
    with pytest.raises(NotAuthorized):
        asyncio.run(service.list_by_course(OTHER_PROF, "CS101"))


def test_roster_denied_to_students(service: LedgerService) -> None:
    with pytest.raises(NotAuthorized):
        asyncio.run(service.list_by_course(STUDENT, "CS101"))


def test_roster_visible_to_admin(service: LedgerService) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    roster = asyncio.run(service.list_by_course(ADMIN, "CS101"))
    assert len(roster) == 1


def test_roster_degrades_to_placeholder_when_identity_down(
    service: LedgerService, upstreams: FakeUpstreams
) -> None:
    asyncio.run(service.enroll(STUDENT, "CS101"))
    upstreams.fail("identity", "timeout")

    (entry,) = asyncio.run(service.list_by_course(PROF, "CS101"))
    assert entry.profile_resolved is False
    assert entry.profile.display_name == "Unknown Student"
    assert entry.record.student_id == STUDENT_ID


def test_roster_fails_when_catalog_down(
    service: LedgerService, upstreams: FakeUpstreams
) -> None:
    upstreams.fail("catalog", "down")
    with pytest.raises(DependencyUnavailable):
        asyncio.run(service.list_by_course(PROF, "CS101"))


def test_check_enrollment_tracks_status(service: LedgerService) -> None:
    assert asyncio.run(service.check_enrollment(PROF, STUDENT_ID, "CS101")) is False
    asyncio.run(service.enroll(STUDENT, "CS101"))
    assert asyncio.run(service.check_enrollment(PROF, STUDENT_ID, "CS101")) is True
    asyncio.run(service.drop(STUDENT, course_id="CS101"))
    assert asyncio.run(service.check_enrollment(PROF, STUDENT_ID, "CS101")) is False


def test_check_enrollment_student_scoped_to_self(service: LedgerService) -> None:
    assert asyncio.run(service.check_enrollment(STUDENT, STUDENT_ID, "CS101")) is False
    with pytest.raises(NotAuthorized):
        asyncio.run(service.check_enrollment(STUDENT, OTHER_STUDENT_ID, "CS101"))
