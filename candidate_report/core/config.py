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


def _get_env_optional_float(name: str) -> float | None:
    raw = _get_env(name, None)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _get_env_optional_int(name: str) -> int | None:
    raw = _get_env(name, None)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _get_env_list(name: str, default: list[str]) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return tuple(default)
    values = [item.strip() for item in raw.split(",")]
    clean = [item for item in values if item]
    return tuple(clean) if clean else tuple(default)


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo"}


@dataclass(frozen=True)
class Settings:
    llm_api_key: str | None
    llm_base_url: str | None
    llm_model: str
    llm_temperature: float
    llm_max_output_tokens: int
    llm_top_p: float | None
    llm_top_k: int | None
    llm_request_timeout_s: float
    report_timeout_s: float
    report_max_attempts: int
    report_backoff_base_s: float
    report_backoff_max_s: float
    max_upload_bytes: int
    session_idle_ttl_s: int
    log_level: str
    sentry_dsn: str | None
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None


def load_settings() -> Settings:
    return Settings(
        llm_api_key=_get_env("LLM_API_KEY") or _get_env("OPENAI_API_KEY"),
        llm_base_url=_get_env("LLM_BASE_URL"),
        llm_model=(_get_env("LLM_MODEL", "gpt-4o") or "gpt-4o").strip(),
        llm_temperature=_get_env_float("LLM_TEMPERATURE", 0.0),
        llm_max_output_tokens=_get_env_int("LLM_MAX_OUTPUT_TOKENS", 8192),
        llm_top_p=_get_env_optional_float("LLM_TOP_P"),
        llm_top_k=_get_env_optional_int("LLM_TOP_K"),
        llm_request_timeout_s=_get_env_float("LLM_REQUEST_TIMEOUT_S", 90.0),
        report_timeout_s=_get_env_float("REPORT_TIMEOUT_S", 240.0),
        report_max_attempts=_get_env_int("REPORT_MAX_ATTEMPTS", 3),
        report_backoff_base_s=_get_env_float("REPORT_BACKOFF_BASE_S", 1.0),
        report_backoff_max_s=_get_env_float("REPORT_BACKOFF_MAX_S", 8.0),
        max_upload_bytes=_get_env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        session_idle_ttl_s=_get_env_int("SESSION_IDLE_TTL_S", 3600),
        log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
        sentry_dsn=_get_env("SENTRY_DSN"),
        cors_allowed_origins=_get_env_list(
            "CORS_ALLOWED_ORIGINS",
            [
                "http://localhost:5173",
                "http://127.0.0.1:5173",
                "http://localhost:3000",
            ],
        ),
        cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX"),
    )


def validate_settings(cfg: Settings) -> None:
    """Fail fast on configuration that would make every submission fail."""
    key = (cfg.llm_api_key or "").strip()
    if not key or _looks_like_placeholder(key):
        raise RuntimeError("LLM_API_KEY (or OPENAI_API_KEY) must be set before the service can accept submissions.")
    if not cfg.llm_model:
        raise RuntimeError("LLM_MODEL must not be empty.")
    if not 0.0 <= cfg.llm_temperature <= 2.0:
        raise RuntimeError("LLM_TEMPERATURE must be between 0 and 2.")
    if cfg.llm_max_output_tokens <= 0:
        raise RuntimeError("LLM_MAX_OUTPUT_TOKENS must be a positive integer.")
    if cfg.llm_top_p is not None and not 0.0 < cfg.llm_top_p <= 1.0:
        raise RuntimeError("LLM_TOP_P must be in (0, 1].")
    if cfg.llm_top_k is not None and cfg.llm_top_k <= 0:
        raise RuntimeError("LLM_TOP_K must be a positive integer.")
    if cfg.report_max_attempts < 1:
        raise RuntimeError("REPORT_MAX_ATTEMPTS must be at least 1.")
    if cfg.report_timeout_s <= 0 or cfg.llm_request_timeout_s <= 0:
        raise RuntimeError("REPORT_TIMEOUT_S and LLM_REQUEST_TIMEOUT_S must be positive.")


settings = load_settings()
