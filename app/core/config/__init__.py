from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


@dataclass(frozen=True)
class Settings:
    log_level: str
    sentry_dsn: str | None
    log_payload_max_chars: int
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None
    cors_allow_credentials: bool
    trust_proxy_headers: bool
    rate_limit: str
    rate_limit_enabled: bool
    guest_usage_db_path: str
    guest_analysis_quota: int
    guest_retention_days: int
    guest_purge_interval_s: int
    history_db_path: str
    auth_jwt_secret: str | None
    auth_jwt_audience: str | None
    auth_jwt_algorithms: tuple[str, ...]
    ai_provider: str
    ai_model: str | None
    provider_timeout_s: float
    resume_text_max_chars: int
    job_description_max_chars: int


settings = Settings(
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    log_payload_max_chars=_get_env_int("LOG_PAYLOAD_MAX_CHARS", 300),
    cors_allowed_origins=_get_env_list(
        "CORS_ALLOWED_ORIGINS",
        [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ],
    ),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    cors_allow_credentials=_get_env_bool("CORS_ALLOW_CREDENTIALS", True),
    trust_proxy_headers=_get_env_bool("TRUST_PROXY_HEADERS", True),
    rate_limit=_get_env("RATE_LIMIT", "30/minute") or "30/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    guest_usage_db_path=_get_env("GUEST_USAGE_DB_PATH", "data/guest_usage.db") or "data/guest_usage.db",
    guest_analysis_quota=_get_env_int("GUEST_ANALYSIS_QUOTA", 1),
    guest_retention_days=_get_env_int("GUEST_RETENTION_DAYS", 30),
    guest_purge_interval_s=_get_env_int("GUEST_PURGE_INTERVAL_S", 3600),
    history_db_path=_get_env("HISTORY_DB_PATH", "data/analysis_history.db") or "data/analysis_history.db",
    auth_jwt_secret=_get_env("AUTH_JWT_SECRET"),
    auth_jwt_audience=_get_env("AUTH_JWT_AUDIENCE", "authenticated"),
    auth_jwt_algorithms=_get_env_list("AUTH_JWT_ALGORITHMS", ["HS256"]),
    ai_provider=(_get_env("AI_PROVIDER", "gemini") or "gemini").strip().lower(),
    ai_model=_get_env("AI_MODEL"),
    provider_timeout_s=_get_env_float("PROVIDER_TIMEOUT_S", 60.0),
    resume_text_max_chars=_get_env_int("RESUME_TEXT_MAX_CHARS", 50000),
    job_description_max_chars=_get_env_int("JOB_DESCRIPTION_MAX_CHARS", 20000),
)

if settings.ai_provider not in {"gemini", "openai"}:
    raise RuntimeError("AI_PROVIDER must be either 'gemini' or 'openai'.")

if settings.guest_analysis_quota < 1:
    raise RuntimeError("GUEST_ANALYSIS_QUOTA must be at least 1.")

__all__ = ["Settings", "settings"]
