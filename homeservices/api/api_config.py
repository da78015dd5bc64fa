# This file defines runtime settings for the marketplace API.
# Versioning, list paging, CORS, metrics exposure, and database lock waits are read from the
# environment once and validated here, so routers and services receive a typed object.

from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_SORT_ORDERS = frozenset({"asc", "desc"})


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Home Services Marketplace API"
    api_version_path: str = "/api/v1"
    schema_version: str = "1.0.0"
    app_version: str = "0.1.0"
    environment: str = "local"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, gt=0, lt=65536)
    database_url: str
    db_busy_timeout_seconds: int = 30
    default_page_size: int = 50
    max_page_size: int = 200
    default_sort_order: str = "created_at:desc"
    enable_request_logging: bool = False
    expose_metrics: bool = True
    allowed_origins: list[str] = Field(default_factory=list)

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        segments = [segment for segment in value.strip().split("/") if segment]
        if not value.startswith("/") or len(segments) < 2 or not segments[-1].startswith("v"):
            raise ValueError("api_version_path must look like '/api/v1'.")
        return "/" + "/".join(segments)

    @field_validator("default_page_size", "max_page_size", "db_busy_timeout_seconds")
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than 0.")
        return value

    @field_validator("default_sort_order")
    @classmethod
    def validate_default_sort_order(cls, value: str) -> str:
        field, _, order = value.strip().lower().partition(":")
        if not field or (order and order not in _SORT_ORDERS):
            raise ValueError("default_sort_order must look like 'field:asc' or 'field:desc'.")
        return f"{field}:{order or 'asc'}"

    def api_version_label(self) -> str:
        return self.api_version_path.rsplit("/", 1)[-1]


def _env_text(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_text(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "y", "on"}:
        return True
    if lowered in {"0", "false", "no", "n", "off"}:
        return False
    raise ValueError(f"{name} must be boolean-like, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = _env_text(name)
    return default if raw is None else int(raw)


def _env_list(name: str) -> list[str]:
    raw = _env_text(name)
    if raw is None:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment."""

    if load_env:
        load_dotenv()

    database_url = _env_text("DATABASE_URL")
    if database_url is None:
        raise RuntimeError("DATABASE_URL is required for API startup.")

    return ApiConfig.model_validate(
        {
            "api_name": _env_text("API_NAME") or "Home Services Marketplace API",
            "api_version_path": _env_text("API_VERSION_PATH") or "/api/v1",
            "schema_version": _env_text("API_SCHEMA_VERSION") or "1.0.0",
            "app_version": _env_text("APP_VERSION") or "0.1.0",
            "environment": _env_text("ENV") or "local",
            "host": _env_text("API_HOST") or "0.0.0.0",
            "port": _env_int("API_PORT", 8000),
            "database_url": database_url,
            "db_busy_timeout_seconds": _env_int("DB_BUSY_TIMEOUT_SECONDS", 30),
            "default_page_size": _env_int("API_DEFAULT_PAGE_SIZE", 50),
            "max_page_size": _env_int("API_MAX_PAGE_SIZE", 200),
            "default_sort_order": _env_text("API_DEFAULT_SORT_ORDER") or "created_at:desc",
            "enable_request_logging": _env_bool("API_ENABLE_REQUEST_LOGGING", False),
            "expose_metrics": _env_bool("API_EXPOSE_METRICS", True),
            "allowed_origins": _env_list("API_ALLOWED_ORIGINS"),
        }
    )


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
