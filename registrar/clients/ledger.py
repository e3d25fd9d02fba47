"""Enrollment Ledger client, used by the grading gate."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from registrar.clients.base import ServiceClient


class EnrollmentCheckPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)

    enrolled: bool


class LedgerClient(ServiceClient):
    dependency = "ledger"

    async def is_enrolled(
        self, student_id: str, course_id: str, *, credential: str
    ) -> bool:
        payload = await self._get_json(
            "/v1/enrollments/check",
            credential=credential,
            params={"studentId": student_id, "courseId": course_id},
        )
        return self._parse(EnrollmentCheckPayload, payload).enrolled
