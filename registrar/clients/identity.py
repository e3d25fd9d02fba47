"""Identity Directory client (profile lookups)."""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from registrar.clients.base import ServiceClient
from registrar.core.errors import StudentNotFound
from registrar.models.enrollment import StudentProfile


class ProfilePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str | None = None


class IdentityClient(ServiceClient):
    dependency = "identity"

    async def get_profile(self, user_id: str, *, credential: str) -> StudentProfile:
        payload = await self._get_json(
            f"/api/users/{quote(user_id, safe='')}/profile",
            credential=credential,
            not_found=lambda: StudentNotFound(user_id),
        )
        p = self._parse(ProfilePayload, payload)
        return StudentProfile(first_name=p.first_name, last_name=p.last_name, email=p.email)
