from __future__ import annotations

from dataclasses import dataclass, field

STUDENT = "student"
FACULTY = "faculty"
ADMIN = "admin"

ROLES = frozenset({STUDENT, FACULTY, ADMIN})


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller resolved from an Identity-issued bearer token.

    Carried through the request via FastAPI's dependency system and passed
    explicitly into every service operation.  ``credential`` is the raw
    bearer token; the dependency clients forward it so downstream services
    authorize the same caller.
    """

    id: str
    role: str
    email: str | None = None
    credential: str = field(default="", repr=False)

    def has_role(self, role: str) -> bool:
        return self.role == role

    def has_any_role(self, roles: set[str]) -> bool:
        return self.role in roles

    @property
    def is_student(self) -> bool:
        return self.role == STUDENT

    @property
    def is_faculty(self) -> bool:
        return self.role == FACULTY

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN
