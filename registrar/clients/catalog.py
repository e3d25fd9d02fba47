"""Catalog service client (read-only)."""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from registrar.clients.base import ServiceClient
from registrar.core.errors import CourseNotFound
from registrar.models.course import Course


class CoursePayload(BaseModel):
    """Wire shape of a Catalog course.

    Older Catalog builds send numeric ids and an ``isOpen`` flag instead of
    ``status``; both are normalized here.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    instructor_id: str | None = Field(default=None, alias="instructorId")
    capacity: int | None = None
    enrolled_count: int | None = Field(default=None, alias="enrolledCount")
    status: str | None = None
    is_open: bool | None = Field(default=None, alias="isOpen")
    code: str | None = None
    name: str | None = None

    @field_validator("id", "instructor_id", mode="before")
    @classmethod
    def _stringify_ids(cls, v: object) -> object:
        if isinstance(v, bool):
            raise ValueError("id must be a string or integer")
        return str(v) if isinstance(v, int) else v

    def to_course(self) -> Course:
        if self.status is not None:
            status = self.status.strip().lower()
        elif self.is_open is not None:
            status = "open" if self.is_open else "closed"
        else:
            status = "open"
        return Course(
            id=self.id,
            instructor_id=self.instructor_id,
            capacity=self.capacity,
            enrolled_count=self.enrolled_count,
            status=status,
            code=self.code,
            name=self.name,
        )


class CatalogClient(ServiceClient):
    dependency = "catalog"

    async def get_course(self, course_id: str, *, credential: str) -> Course:
        path = f"/api/courses/{quote(course_id, safe='')}"
        payload = await self._get_json(
            path,
            credential=credential,
            not_found=lambda: CourseNotFound(course_id),
        )
        course = self._parse(CoursePayload, payload).to_course()
        # Callers store records under course_id, so the answer must be for it.
        if course.id != course_id:
            raise self._unavailable(
                path, f"answered for course {course.id!r} instead of {course_id!r}"
            )
        return course

    async def list_courses_by_instructor(
        self, instructor_id: str, *, credential: str
    ) -> list[Course]:
        payload = await self._get_json(
            "/api/courses",
            credential=credential,
            params={"instructorId": instructor_id},
        )
        if not isinstance(payload, list):
            raise self._unavailable("/api/courses", "expected a list of courses")
        courses = [self._parse(CoursePayload, item).to_course() for item in payload]
        # The filter is applied again locally; a Catalog that ignores the
        # query parameter must not widen a faculty member's grade view.
        return [c for c in courses if c.is_taught_by(instructor_id)]
