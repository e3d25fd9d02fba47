from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
ServiceName = Literal["ledger", "grading"]

_DEV_JWT_SECRET = "dev-only-shared-secret-change-me-0123456789"


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    service_name: ServiceName
    database_url: str | None
    jwt_secret: str
    catalog_url: str
    identity_url: str
    ledger_url: str
    dependency_timeout_seconds: float

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    service_raw = _getenv("SERVICE_NAME", "ledger").lower()
    timeout_raw = _getenv("DEPENDENCY_TIMEOUT_SECONDS", "2.0")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if service_raw not in ("ledger", "grading"):
        raise ValueError(f"SERVICE_NAME must be ledger|grading (got {service_raw!r})")

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"DEPENDENCY_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if not timeout > 0:
        # Every dependency call carries a finite timeout.
        raise ValueError(
            f"DEPENDENCY_TIMEOUT_SECONDS must be positive (got {timeout_raw!r})"
        )

    jwt_secret = _getenv("JWT_SECRET", "")
    if not jwt_secret:
        if app_env_raw == "prod":
            raise ValueError("JWT_SECRET must be set when APP_ENV=prod")
        jwt_secret = _DEV_JWT_SECRET

    database_url = _getenv("DATABASE_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        service_name=service_raw,
        database_url=database_url,
        jwt_secret=jwt_secret,
        catalog_url=_getenv("CATALOG_URL", "http://localhost:8082").rstrip("/"),
        identity_url=_getenv("IDENTITY_URL", "http://localhost:8081").rstrip("/"),
        ledger_url=_getenv("LEDGER_URL", "http://localhost:8083").rstrip("/"),
        dependency_timeout_seconds=timeout,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
