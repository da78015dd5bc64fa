"""
Process-wide settings shared by the API bootstrap and the seeding script.

Values come from `.env` and the process environment. The API reads its own
request-facing knobs through `ApiConfig`; this module covers what every entry
point needs: where the database lives, how loudly to log, and which admin
account the seed step provisions.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Final

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

REQUIRED_ENV_VARS: Final[tuple[str, ...]] = (
    "PROJECT_NAME",
    "ENV",
    "LOG_LEVEL",
    "DATABASE_URL",
    "API_HOST",
    "API_PORT",
)

_LOG_LEVELS: Final[frozenset[str]] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    PROJECT_NAME: str
    ENV: str
    LOG_LEVEL: str
    DATABASE_URL: str
    API_HOST: str
    API_PORT: int
    SEED_ADMIN_EMAIL: str = "admin@example.com"
    SEED_ADMIN_PHONE: str = "+10000000000"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("SEED_ADMIN_EMAIL")
    @classmethod
    def normalize_seed_email(cls, value: str) -> str:
        email = value.strip().lower()
        if "@" not in email:
            raise ValueError("SEED_ADMIN_EMAIL must be an email address")
        return email


def load_settings(*, load_env: bool = True) -> Settings:
    if load_env:
        load_dotenv()

    missing = sorted(key for key in REQUIRED_ENV_VARS if not os.getenv(key))
    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Set them in `.env` or the process environment."
        )

    try:
        return Settings.model_validate(dict(os.environ))
    except ValidationError as exc:
        raise RuntimeError(f"Invalid environment configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
