# This file defines response schemas for health, readiness, and version endpoints.
# Readiness reports which marketplace tables are missing so a failed deploy points at the schema.

from __future__ import annotations

from datetime import datetime

from homeservices.api.schemas.common import VersionedFields


class HealthResponse(VersionedFields):
    status: str
    environment: str
    service_name: str
    timestamp: datetime


class ReadinessResponse(VersionedFields):
    db_connected: bool
    schema_ready: bool
    missing_tables: list[str]
    ready: bool
    database: str
    timestamp: datetime


class VersionResponse(VersionedFields):
    api_version_path: str
    app_version: str
    project: str
    timestamp: datetime
