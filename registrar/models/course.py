from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Course:
    """Read-only view of a Catalog course, fetched per request.

    ``enrolled_count`` is the Catalog's own denormalized counter.  It is
    maintained independently of the ledger and drifts from the real roster
    size; nothing in this package reads it for decisions.
    """

    id: str
    instructor_id: str | None
    capacity: int | None = None
    enrolled_count: int | None = None
    status: str = "open"  # open|closed|...
    code: str | None = None
    name: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    def is_taught_by(self, principal_id: str) -> bool:
        return self.instructor_id is not None and self.instructor_id == principal_id
