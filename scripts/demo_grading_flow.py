"""Demo: enroll → roster → grade → drop, with both services in-process.

The Catalog and Identity Directory are stubbed with httpx.MockTransport;
grading-gate calls to the ledger are served by a real ledger app through
httpx.ASGITransport.

Run with:
    python scripts/demo_grading_flow.py
"""

from __future__ import annotations

import httpx
from fastapi.testclient import TestClient

from registrar.core.config import SETTINGS
from registrar.main import create_grading_app, create_ledger_app
from registrar.repos.enrollment_repo import InMemoryEnrollmentRepo
from registrar.repos.grade_repo import InMemoryGradeRepo
from registrar.services.token_service import create_access_token

STUDENT_ID = "ada@example.edu"
PROF_ID = "prof-hopper"
COURSE = {
    "id": "CS101",
    "instructorId": PROF_ID,
    "capacity": 30,
    "status": "open",
    "code": "CS101",
    "name": "Intro to Programming",
}


def _stub(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if url.startswith(SETTINGS.catalog_url):
        if request.url.path == f"/api/courses/{COURSE['id']}":
            return httpx.Response(200, json=COURSE)
        return httpx.Response(404)
    if url.startswith(SETTINGS.identity_url):
        return httpx.Response(200, json={"firstName": "Ada", "lastName": "Lovelace"})
    return httpx.Response(404)


class _Upstreams(httpx.AsyncBaseTransport):
    def __init__(self) -> None:
        self.stub = httpx.MockTransport(_stub)
        self.ledger: httpx.AsyncBaseTransport | None = None

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.ledger is not None and str(request.url).startswith(SETTINGS.ledger_url):
            return await self.ledger.handle_async_request(request)
        return await self.stub.handle_async_request(request)


def _bearer(sub: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(sub=sub, role=role)}"}


def main() -> None:
    upstreams = _Upstreams()
    ledger_app = create_ledger_app(repo=InMemoryEnrollmentRepo(), transport=upstreams)
    upstreams.ledger = httpx.ASGITransport(app=ledger_app)
    grading_app = create_grading_app(repo=InMemoryGradeRepo(), transport=upstreams)

    ledger = TestClient(ledger_app)
    grading = TestClient(grading_app)
    student = _bearer(STUDENT_ID, "student")
    prof = _bearer(PROF_ID, "faculty")

    # ── Step 1: enroll ──────────────────────────────────────────────
    r = ledger.post("/v1/enrollments", json={"courseId": "CS101"}, headers=student)
    enrollment_id = r.json()["id"]
    print(f"1. POST /v1/enrollments          → {r.status_code}  id={enrollment_id}")

    # ── Step 2: enroll again ────────────────────────────────────────
    r = ledger.post("/v1/enrollments", json={"courseId": "CS101"}, headers=student)
    print(f"2. POST /v1/enrollments (again)  → {r.status_code}  {r.json()['detail']['kind']}")

    # ── Step 3: roster ──────────────────────────────────────────────
    r = ledger.get("/v1/enrollments/course/CS101", headers=prof)
    names = [f"{e['student']['firstName']} {e['student']['lastName']}" for e in r.json()]
    print(f"3. GET  roster                   → {r.status_code}  {names}")

    # ── Step 4: grade ───────────────────────────────────────────────
    body = {"studentId": STUDENT_ID, "courseId": "CS101", "score": 91}
    r = grading.post("/v1/grades", json=body, headers=prof)
    grade = r.json()
    print(
        f"4. POST /v1/grades               → {r.status_code}  "
        f"{grade['score']} → {grade['derivedGrade']} ({grade['letterGrade']})"
    )

    # ── Step 5: drop, then try to grade again ───────────────────────
    r = ledger.post("/v1/enrollments/drop", json={"courseId": "CS101"}, headers=student)
    print(f"5. POST /v1/enrollments/drop     → {r.status_code}  {r.json()['status']}")
    r = grading.post("/v1/grades", json={**body, "score": 99}, headers=prof)
    print(f"6. POST /v1/grades (dropped)     → {r.status_code}  {r.json()['detail']['kind']}")

    # ── Step 7: re-enroll keeps the record ──────────────────────────
    r = ledger.post("/v1/enrollments", json={"courseId": "CS101"}, headers=student)
    same = r.json()["id"] == enrollment_id
    print(f"7. POST /v1/enrollments (re)     → {r.status_code}  same record: {same}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
