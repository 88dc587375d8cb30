from __future__ import annotations

from dataclasses import dataclass
import logging
import os


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value is not None else default


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


def _get_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


@dataclass(frozen=True)
class Settings:
    upstream_base_url: str
    upstream_path: str
    upstream_api_key: str | None
    upstream_model: str
    request_timeout: float
    upstream_max_retries: int
    upstream_retry_backoff: float
    temperature: float
    log_level: str


def get_settings() -> Settings:
    return Settings(
        upstream_base_url=_get_env("UPSTREAM_BASE_URL", "http://localhost:8001"),
        upstream_path=_get_env("UPSTREAM_PATH", "/chat/completions"),
        upstream_api_key=_get_env("UPSTREAM_API_KEY"),
        upstream_model=_get_env("UPSTREAM_MODEL", "meta-llama-3.1-8b-instruct"),
        request_timeout=_get_float("REQUEST_TIMEOUT", 60.0),
        upstream_max_retries=max(0, _get_int("UPSTREAM_MAX_RETRIES", 2)),
        upstream_retry_backoff=_get_float("UPSTREAM_RETRY_BACKOFF", 0.5),
        temperature=_get_float("TEMPERATURE", 0.7),
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
