from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


@dataclass(frozen=True)
class CredentialSettings:
    """Issuer-facing knobs handed to the credential services at construction.

    Services never read the environment themselves; they receive this.
    """

    issuer_name: str = "E-Learning Platform"
    verify_base_url: str = "http://localhost:5173"
    completion_threshold: int = 100
    validity_months: int | None = None

    def verification_url(self, code: str) -> str:
        return f"{self.verify_base_url}/verify/{code}"


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    credentials: CredentialSettings = CredentialSettings()
    jwt_public_key_file: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("", "0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be true|false (got {raw!r})")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def load_credential_settings() -> CredentialSettings:
    issuer_name = _getenv("CREDENTIAL_ISSUER_NAME", "E-Learning Platform")
    base_url = _getenv("CREDENTIAL_VERIFY_BASE_URL", "http://localhost:5173")
    threshold = _parse_int(
        "CREDENTIAL_COMPLETION_THRESHOLD",
        _getenv("CREDENTIAL_COMPLETION_THRESHOLD", "100"),
    )
    validity_raw = _getenv("CREDENTIAL_VALIDITY_MONTHS", "")

    if not issuer_name:
        raise ValueError("CREDENTIAL_ISSUER_NAME must be non-empty")

    if not base_url.startswith(("http://", "https://")):
        raise ValueError(
            f"CREDENTIAL_VERIFY_BASE_URL must be an http(s) URL (got {base_url!r})"
        )

    if not 1 <= threshold <= 100:
        raise ValueError(
            f"CREDENTIAL_COMPLETION_THRESHOLD must be 1..100 (got {threshold})"
        )

    validity_months: int | None = None
    if validity_raw:
        validity_months = _parse_int("CREDENTIAL_VALIDITY_MONTHS", validity_raw)
        if validity_months <= 0:
            raise ValueError(
                f"CREDENTIAL_VALIDITY_MONTHS must be positive (got {validity_months})"
            )

    return CredentialSettings(
        issuer_name=issuer_name,
        verify_base_url=base_url.rstrip("/"),
        completion_threshold=threshold,
        validity_months=validity_months,
    )


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _parse_int("PORT", port_raw)
    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    jwt_public_key_file = _getenv("JWT_PUBLIC_KEY_FILE", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        credentials=load_credential_settings(),
        jwt_public_key_file=jwt_public_key_file,
    )


# Read once at import; tests build their own Settings.
SETTINGS = load_settings()
