"""Enrollment ledger endpoints.

  POST /v1/enrollments                 enroll the calling student
  POST /v1/enrollments/drop            drop by courseId or enrollmentId
  GET  /v1/enrollments                 caller's records, newest first
  GET  /v1/enrollments/course/{id}     roster (instructor/admin)
  GET  /v1/enrollments/check           {enrolled: bool}, used by grading
"""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel

from registrar.api.dependencies import require_any_role, require_role, require_user
from registrar.api.errors import http_error
from registrar.api.schemas import CamelModel
from registrar.core.errors import RegistrarError
from registrar.models.enrollment import EnrollmentRecord, RosterEntry
from registrar.models.principal import ADMIN, FACULTY, STUDENT, Principal
from registrar.services.ledger_service import LedgerService

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


class EnrollIn(CamelModel):
    course_id: str


class DropIn(CamelModel):
    course_id: str | None = None
    enrollment_id: UUID | None = None


class EnrollmentOut(CamelModel):
    id: UUID
    student_id: str
    course_id: str
    status: str
    enrollment_date: datetime.datetime

    @classmethod
    def from_record(cls, record: EnrollmentRecord) -> EnrollmentOut:
        return cls(
            id=record.id,
            student_id=record.student_id,
            course_id=record.course_id,
            status=record.status.value,
            enrollment_date=record.enrollment_date,
        )


class StudentProfileOut(CamelModel):
    first_name: str
    last_name: str
    email: str | None = None


class RosterEntryOut(EnrollmentOut):
    student: StudentProfileOut
    profile_resolved: bool

    @classmethod
    def from_entry(cls, entry: RosterEntry) -> RosterEntryOut:
        base = EnrollmentOut.from_record(entry.record)
        return cls(
            **base.model_dump(),
            student=StudentProfileOut(
                first_name=entry.profile.first_name,
                last_name=entry.profile.last_name,
                email=entry.profile.email,
            ),
            profile_resolved=entry.profile_resolved,
        )


class EnrollmentCheckOut(BaseModel):
    enrolled: bool


def get_ledger_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


LedgerDep = Annotated[LedgerService, Depends(get_ledger_service)]


@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def enroll(
    body: EnrollIn,
    response: Response,
    principal: Annotated[Principal, Depends(require_role(STUDENT))],
    ledger: LedgerDep,
) -> EnrollmentOut:
    """Enroll in a course.  201 for a new record, 200 for a re-enrollment."""
    try:
        record, created = await ledger.enroll(principal, body.course_id)
    except RegistrarError as e:
        raise http_error(e) from None
    if not created:
        response.status_code = status.HTTP_200_OK
    return EnrollmentOut.from_record(record)


@router.post("/drop", response_model=EnrollmentOut)
async def drop(
    body: DropIn,
    principal: Annotated[Principal, Depends(require_role(STUDENT))],
    ledger: LedgerDep,
) -> EnrollmentOut:
    try:
        record = await ledger.drop(
            principal, enrollment_id=body.enrollment_id, course_id=body.course_id
        )
    except RegistrarError as e:
        raise http_error(e) from None
    return EnrollmentOut.from_record(record)


@router.get("", response_model=list[EnrollmentOut])
async def list_my_enrollments(
    principal: Annotated[Principal, Depends(require_role(STUDENT))],
    ledger: LedgerDep,
) -> list[EnrollmentOut]:
    try:
        records = await ledger.list_for_principal(principal)
    except RegistrarError as e:
        raise http_error(e) from None
    return [EnrollmentOut.from_record(r) for r in records]


@router.get("/check", response_model=EnrollmentCheckOut)
async def check_enrollment(
    principal: Annotated[Principal, Depends(require_user)],
    ledger: LedgerDep,
    student_id: Annotated[str, Query(alias="studentId")],
    course_id: Annotated[str, Query(alias="courseId")],
) -> EnrollmentCheckOut:
    try:
        enrolled = await ledger.check_enrollment(principal, student_id, course_id)
    except RegistrarError as e:
        raise http_error(e) from None
    return EnrollmentCheckOut(enrolled=enrolled)


@router.get("/course/{course_id}", response_model=list[RosterEntryOut])
async def course_roster(
    course_id: str,
    principal: Annotated[Principal, Depends(require_any_role({FACULTY, ADMIN}))],
    ledger: LedgerDep,
) -> list[RosterEntryOut]:
    try:
        entries = await ledger.list_by_course(principal, course_id)
    except RegistrarError as e:
        raise http_error(e) from None
    return [RosterEntryOut.from_entry(entry) for entry in entries]
