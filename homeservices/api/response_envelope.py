# This file builds the JSON envelope every marketplace response is wrapped in.
# Each payload carries the API and schema versions plus the request id assigned by the middleware,
# so a client can quote one id when reporting a failed payment or transition.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import Request

from homeservices.api.api_config import ApiConfig


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def version_fields(config: ApiConfig) -> dict[str, str]:
    """`api_version` is the last segment of the version path, e.g. `v1` for `/api/v1`."""

    return {
        "api_version": config.api_version_label(),
        "schema_version": config.schema_version,
    }


def request_id_of(request: Request) -> str:
    return str(getattr(request.state, "request_id", "unknown"))


def build_envelope(
    request: Request,
    config: ApiConfig,
    data: Any,
    *,
    pagination: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    """Wrap `data`; list views also pass their pagination block."""

    envelope: dict[str, Any] = {
        **version_fields(config),
        "request_id": request_id_of(request),
        "generated_at": utc_now(),
        "data": data,
        "warnings": warnings,
    }
    if pagination is not None:
        envelope["pagination"] = pagination
    return envelope
