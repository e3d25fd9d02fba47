from __future__ import annotations

import asyncio
import os

# Settings are read once at import time, so the environment has to be in
# place before anything under registrar is imported.
os.environ["APP_ENV"] = "test"
os.environ["SERVICE_NAME"] = "ledger"
os.environ["JWT_SECRET"] = "test-shared-secret-0123456789abcdef0123"
os.environ["CATALOG_URL"] = "http://catalog.test"
os.environ["IDENTITY_URL"] = "http://identity.test"
os.environ["LEDGER_URL"] = "http://ledger.test"
os.environ.pop("DATABASE_URL", None)

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from registrar.clients.base import build_http_client  # noqa: E402
from registrar.clients.catalog import CatalogClient  # noqa: E402
from registrar.clients.identity import IdentityClient  # noqa: E402
from registrar.clients.ledger import LedgerClient  # noqa: E402
from registrar.core.config import SETTINGS  # noqa: E402
from registrar.main import create_grading_app, create_ledger_app  # noqa: E402
from registrar.models.principal import Principal  # noqa: E402
from registrar.repos.enrollment_repo import InMemoryEnrollmentRepo  # noqa: E402
from registrar.repos.grade_repo import InMemoryGradeRepo  # noqa: E402
from registrar.services import token_service  # noqa: E402

STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"
PROF_ID = "prof-1"
OTHER_PROF_ID = "prof-2"
ADMIN_ID = "admin-1"

_COURSES = [
    {
        "id": "CS101",
        "instructorId": PROF_ID,
        "capacity": 30,
        "enrolledCount": 0,
        "status": "open",
        "code": "CS101",
        "name": "Intro to Programming",
    },
    {
        "id": "CS102",
        "instructorId": PROF_ID,
        "capacity": 30,
        "status": "closed",
        "code": "CS102",
        "name": "Data Structures",
    },
    {
        "id": "CS201",
        "instructorId": OTHER_PROF_ID,
        "capacity": 1,
        "status": "open",
        "code": "CS201",
        "name": "Algorithms",
    },
]

_PROFILES = {
    STUDENT_ID: {"firstName": "Ada", "lastName": "Lovelace", "email": "ada@example.edu"},
    OTHER_STUDENT_ID: {
        "firstName": "Alan",
        "lastName": "Turing",
        "email": "alan@example.edu",
    },
}


class FakeUpstreams(httpx.AsyncBaseTransport):
    """In-process stand-in for the Catalog, Identity and Ledger services.

    The dependency is picked from the host (``catalog.test`` → catalog).
    ``fail(dependency, mode)`` makes every call to it fail with one of:
    timeout, down, error (500), rejected (401), malformed (non-JSON body),
    bad_shape (JSON of the wrong shape).

    When ``ledger`` is set to a transport (an ASGITransport over a real
    ledger app), ledger calls go there; otherwise they are answered from
    ``enrolled``.
    """

    def __init__(self) -> None:
        self.courses = {c["id"]: dict(c) for c in _COURSES}
        self.profiles = {k: dict(v) for k, v in _PROFILES.items()}
        self.enrolled: set[tuple[str, str]] = set()
        self.failures: dict[str, str] = {}
        self.requests: list[httpx.Request] = []
        self.ledger: httpx.AsyncBaseTransport | None = None
        # Off simulates a Catalog that ignores the instructorId query parameter.
        self.filter_by_instructor = True

    def fail(self, dependency: str, mode: str) -> None:
        self.failures[dependency] = mode

    def calls_to(self, dependency: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == f"{dependency}.test"]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Yield so concurrent callers interleave the way they would on a network.
        await asyncio.sleep(0)

        dependency = request.url.host.split(".")[0]
        mode = self.failures.get(dependency)
        if mode is not None:
            return self._failure(request, mode)
        if dependency == "ledger" and self.ledger is not None:
            return await self.ledger.handle_async_request(request)

        handler = {
            "catalog": self._catalog,
            "identity": self._identity,
            "ledger": self._ledger,
        }[dependency]
        return handler(request)

    def _failure(self, request: httpx.Request, mode: str) -> httpx.Response:
        if mode == "timeout":
            raise httpx.ReadTimeout("timed out", request=request)
        if mode == "down":
            raise httpx.ConnectError("connection refused", request=request)
        if mode == "error":
            return httpx.Response(500, json={"error": "boom"})
        if mode == "rejected":
            return httpx.Response(401, json={"error": "unauthorized"})
        if mode == "malformed":
            return httpx.Response(200, content=b"<html>not json</html>")
        if mode == "bad_shape":
            return httpx.Response(200, json={"unexpected": True})
        raise AssertionError(f"unknown failure mode {mode!r}")

    def _catalog(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/courses":
            instructor = request.url.params.get("instructorId")
            if not self.filter_by_instructor:
                instructor = None
            return httpx.Response(
                200,
                json=[
                    c
                    for c in self.courses.values()
                    if instructor is None or c.get("instructorId") == instructor
                ],
            )
        course_id = path.removeprefix("/api/courses/")
        course = self.courses.get(course_id)
        if course is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=course)

    def _identity(self, request: httpx.Request) -> httpx.Response:
        user_id = request.url.path.removeprefix("/api/users/").removesuffix("/profile")
        profile = self.profiles.get(user_id)
        if profile is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=profile)

    def _ledger(self, request: httpx.Request) -> httpx.Response:
        key = (request.url.params["studentId"], request.url.params["courseId"])
        return httpx.Response(200, json={"enrolled": key in self.enrolled})


# ---------------------------------------------------------------------------
# Tokens and principals
# ---------------------------------------------------------------------------


def mint_token(sub: str = STUDENT_ID, role: str = "student", **kwargs) -> str:
    """Create a valid HS256 token the way the Identity Directory would."""
    return token_service.create_access_token(sub=sub, role=role, **kwargs)


def auth_headers(sub: str = STUDENT_ID, role: str = "student") -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(sub, role)}"}


def principal(sub: str = STUDENT_ID, role: str = "student") -> Principal:
    return Principal(id=sub, role=role, credential=mint_token(sub, role))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upstreams() -> FakeUpstreams:
    return FakeUpstreams()


@pytest.fixture
def catalog(upstreams: FakeUpstreams) -> CatalogClient:
    return CatalogClient(
        build_http_client(SETTINGS.catalog_url, timeout_seconds=1.0, transport=upstreams)
    )


@pytest.fixture
def identity(upstreams: FakeUpstreams) -> IdentityClient:
    return IdentityClient(
        build_http_client(SETTINGS.identity_url, timeout_seconds=1.0, transport=upstreams)
    )


@pytest.fixture
def ledger(upstreams: FakeUpstreams) -> LedgerClient:
    return LedgerClient(
        build_http_client(SETTINGS.ledger_url, timeout_seconds=1.0, transport=upstreams)
    )


@pytest.fixture
def ledger_app(upstreams: FakeUpstreams) -> FastAPI:
    """A fresh ledger app; grading calls to ledger.test are served by it."""
    app = create_ledger_app(repo=InMemoryEnrollmentRepo(), transport=upstreams)
    upstreams.ledger = httpx.ASGITransport(app=app)
    return app


@pytest.fixture
def ledger_client(ledger_app: FastAPI) -> TestClient:
    return TestClient(ledger_app)


@pytest.fixture
def grading_client(upstreams: FakeUpstreams, ledger_app: FastAPI) -> TestClient:
    return TestClient(create_grading_app(repo=InMemoryGradeRepo(), transport=upstreams))
