"""Verification of Identity-issued bearer tokens (HS256).

The Identity Directory signs access tokens with a secret shared by every
service in the deployment, so resolving a credential to a principal is a
local signature check rather than a network round-trip.

Claims consumed:
    sub    principal id
    role   "student" | "faculty" | "admin"   (or ``roles: ["STUDENT"]``,
           the list form older Identity builds still issue)
    email  optional; falls back to ``sub`` when it looks like an address
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt

from registrar.core.config import SETTINGS
from registrar.models.principal import FACULTY, ROLES, Principal

ALGORITHM = "HS256"
ISSUER = "identity-directory"
ACCESS_TOKEN_TTL_MIN = 15

# Role spellings seen in tokens from older Identity builds.
_ROLE_ALIASES = {"instructor": FACULTY}


class TokenClaimsError(jwt.InvalidTokenError):
    """Signature is valid but the claims do not describe a usable principal."""


def create_access_token(
    *,
    sub: str,
    role: str,
    email: str | None = None,
    ttl_minutes: int = ACCESS_TOKEN_TTL_MIN,
    secret: str | None = None,
) -> str:
    """Sign a token the way the Identity Directory does.

    Used by tests and the local demo script; production tokens come from
    the Identity Directory itself.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "role": role,
    }
    if email is not None:
        payload["email"] = email
    return jwt.encode(payload, secret or SETTINGS.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and standard claims, return the payload.

    Pins the algorithm to HS256 to prevent alg:none and alg-switching.
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        SETTINGS.jwt_secret,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        options={"require": ["sub", "exp", "iat"]},
    )


def principal_from_claims(claims: dict, credential: str) -> Principal:
    role = claims.get("role")
    if role is None:
        roles = claims.get("roles") or []
        role = roles[0] if isinstance(roles, list) and roles else None
    if not isinstance(role, str):
        raise TokenClaimsError("token carries no role")

    role = role.strip().lower()
    role = _ROLE_ALIASES.get(role, role)
    if role not in ROLES:
        raise TokenClaimsError(f"unknown role {role!r}")

    sub = str(claims["sub"])
    email = claims.get("email")
    if email is None and "@" in sub:
        email = sub
    return Principal(id=sub, role=role, email=email, credential=credential)
