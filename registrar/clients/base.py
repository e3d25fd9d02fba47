"""Shared call policy for every outbound service call.

Each dependency (catalog, identity, ledger) gets one client class built on
ServiceClient, and each app holds one ``httpx.AsyncClient`` per dependency
for its whole lifetime.  The policy is the same for all of them:

  * one request per fact, made in the caller's request path, never cached
  * the caller's bearer credential is forwarded as-is, along with the
    inbound X-Request-ID
  * a finite timeout on every call (DEPENDENCY_TIMEOUT_SECONDS)
  * no retries and no circuit breaker

Outcome mapping
---------------
  2xx + well-formed JSON   → payload returned
  404                      → the client's domain NotFound (CourseNotFound, ...)
  timeout                  → DependencyUnavailable (outcome=timeout)
  connect/transport error  → DependencyUnavailable (outcome=unavailable)
  401/403                  → DependencyUnavailable (outcome=rejected)
  other non-2xx            → DependencyUnavailable (outcome=unavailable)
  bad JSON / wrong shape   → DependencyUnavailable (outcome=malformed)

A 401/403 from a dependency means it refused the forwarded credential.
That is a failure to perform the check, not a decision about the caller,
so it is never reported as NotAuthorized.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
import pydantic

from registrar.core.errors import DependencyUnavailable, RegistrarError
from registrar.core.logging import request_id_var
from registrar.core.metrics import DEPENDENCY_CALLS, DEPENDENCY_DURATION

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def build_http_client(
    base_url: str,
    *,
    timeout_seconds: float,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the long-lived HTTP client for one dependency."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout_seconds),
        transport=transport,
        headers={"Accept": "application/json"},
    )


class ServiceClient:
    """Base class: one GET-JSON primitive with the uniform error policy."""

    dependency = "service"

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_json(
        self,
        path: str,
        *,
        credential: str,
        params: dict[str, str] | None = None,
        not_found: Callable[[], RegistrarError] | None = None,
    ) -> Any:
        headers = {"X-Request-ID": request_id_var.get()}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        start = time.monotonic()
        outcome = "ok"
        try:
            try:
                response = await self._http.get(path, params=params, headers=headers)
            except httpx.TimeoutException as e:
                outcome = "timeout"
                raise self._unavailable(path, "timed out") from e
            except httpx.TransportError as e:
                outcome = "unavailable"
                raise self._unavailable(path, f"connection failed ({type(e).__name__})") from e

            if response.status_code == 404 and not_found is not None:
                outcome = "not_found"
                raise not_found()
            if response.status_code in (401, 403):
                outcome = "rejected"
                raise self._unavailable(
                    path, f"credential rejected with {response.status_code}"
                )
            if not response.is_success:
                outcome = "unavailable"
                raise self._unavailable(path, f"responded {response.status_code}")

            try:
                return response.json()
            except ValueError as e:
                outcome = "malformed"
                raise self._unavailable(path, "response body is not JSON") from e
        finally:
            DEPENDENCY_DURATION.labels(dependency=self.dependency).observe(
                time.monotonic() - start
            )
            DEPENDENCY_CALLS.labels(dependency=self.dependency, outcome=outcome).inc()
            logger.debug(
                "GET %s%s → %s",
                self.dependency,
                path,
                outcome,
                extra={"dependency": self.dependency, "outcome": outcome},
            )

    def _parse(self, model: type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as e:
            logger.warning(
                "Malformed %s payload: %s",
                self.dependency,
                e.errors(include_url=False),
                extra={"dependency": self.dependency, "outcome": "malformed"},
            )
            raise DependencyUnavailable(self.dependency, "malformed response") from e

    def _unavailable(self, path: str, reason: str) -> DependencyUnavailable:
        logger.warning(
            "%s call GET %s failed: %s",
            self.dependency,
            path,
            reason,
            extra={"dependency": self.dependency},
        )
        return DependencyUnavailable(self.dependency, reason)
