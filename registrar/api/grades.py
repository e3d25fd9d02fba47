"""Grading gate endpoints.

  POST   /v1/grades                                   submit or update (faculty)
  GET    /v1/grades                                   grades visible to the caller
  GET    /v1/grades/student/{sid}                     one student's grades
  GET    /v1/grades/student/{sid}/course/{cid}        a single grade
  GET    /v1/grades/course/{cid}                      a course's grades (faculty/admin)
  DELETE /v1/grades/{id}                              submitter only
"""

from __future__ import annotations

import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status

from registrar.api.dependencies import require_any_role, require_user
from registrar.api.errors import http_error
from registrar.api.schemas import CamelModel
from registrar.core.errors import RegistrarError
from registrar.models.grade import GradeView
from registrar.models.principal import ADMIN, FACULTY, Principal
from registrar.services.grading_service import GradingService

router = APIRouter(prefix="/v1/grades", tags=["grades"])


class GradeIn(CamelModel):
    student_id: str
    course_id: str
    # Range and type are checked by the service so a bad score surfaces as
    # invalid_score, after the authorization checks.
    score: Any
    comments: str | None = None


class GradeOut(CamelModel):
    id: UUID
    student_id: str
    course_id: str
    score: float
    derived_grade: float
    letter_grade: str
    comments: str
    submitted_by: str
    submitted_at: datetime.datetime
    last_updated: datetime.datetime
    course_code: str | None = None
    course_name: str | None = None
    student_name: str | None = None
    student_email: str | None = None

    @classmethod
    def from_view(cls, view: GradeView) -> GradeOut:
        g = view.grade
        return cls(
            id=g.id,
            student_id=g.student_id,
            course_id=g.course_id,
            score=g.score,
            derived_grade=g.derived_grade,
            letter_grade=g.letter_grade,
            comments=g.comments,
            submitted_by=g.submitted_by,
            submitted_at=g.submitted_at,
            last_updated=g.last_updated,
            course_code=view.course_code,
            course_name=view.course_name,
            student_name=view.student_name,
            student_email=view.student_email,
        )


def get_grading_service(request: Request) -> GradingService:
    return request.app.state.grading_service


GradingDep = Annotated[GradingService, Depends(get_grading_service)]
FacultyOrAdmin = Annotated[Principal, Depends(require_any_role({FACULTY, ADMIN}))]
AnyUser = Annotated[Principal, Depends(require_user)]


@router.post("", response_model=GradeOut, status_code=status.HTTP_201_CREATED)
async def submit_grade(
    body: GradeIn,
    response: Response,
    principal: FacultyOrAdmin,
    grading: GradingDep,
) -> GradeOut:
    """Create a grade (201) or update the existing one for the pair (200)."""
    try:
        record, created = await grading.submit_grade(
            principal, body.student_id, body.course_id, body.score, body.comments
        )
    except RegistrarError as e:
        raise http_error(e) from None
    if not created:
        response.status_code = status.HTTP_200_OK
    return GradeOut.from_view(GradeView(grade=record))


@router.get("", response_model=list[GradeOut])
async def list_grades(principal: AnyUser, grading: GradingDep) -> list[GradeOut]:
    try:
        views = await grading.get_grades(principal)
    except RegistrarError as e:
        raise http_error(e) from None
    return [GradeOut.from_view(v) for v in views]


@router.get("/student/{student_id}", response_model=list[GradeOut])
async def grades_for_student(
    student_id: str, principal: AnyUser, grading: GradingDep
) -> list[GradeOut]:
    try:
        views = await grading.grades_for_student(principal, student_id)
    except RegistrarError as e:
        raise http_error(e) from None
    return [GradeOut.from_view(v) for v in views]


@router.get("/student/{student_id}/course/{course_id}", response_model=GradeOut)
async def grade_for_student_course(
    student_id: str, course_id: str, principal: AnyUser, grading: GradingDep
) -> GradeOut:
    try:
        view = await grading.grade_for_student_course(principal, student_id, course_id)
    except RegistrarError as e:
        raise http_error(e) from None
    return GradeOut.from_view(view)


@router.get("/course/{course_id}", response_model=list[GradeOut])
async def grades_for_course(
    course_id: str, principal: FacultyOrAdmin, grading: GradingDep
) -> list[GradeOut]:
    try:
        views = await grading.grades_for_course(principal, course_id)
    except RegistrarError as e:
        raise http_error(e) from None
    return [GradeOut.from_view(v) for v in views]


@router.delete("/{grade_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_grade(
    grade_id: UUID, principal: FacultyOrAdmin, grading: GradingDep
) -> Response:
    try:
        await grading.delete_grade(principal, grade_id)
    except RegistrarError as e:
        raise http_error(e) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)
