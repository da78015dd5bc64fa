# This file defines liveness, readiness, and version endpoints for API operations.
# Readiness passes only when the database answers and every marketplace table exists.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from homeservices.api.api_config import ApiConfig
from homeservices.api.db_access import DatabaseClient
from homeservices.api.dependencies import get_config, get_database_client
from homeservices.api.response_envelope import request_id_of, utc_now, version_fields
from homeservices.api.schemas.health_schemas import HealthResponse, ReadinessResponse, VersionResponse
from homeservices.common.ddl import REQUIRED_TABLES

router = APIRouter(tags=["health"])
ConfigDep = Annotated[ApiConfig, Depends(get_config)]
DBDep = Annotated[DatabaseClient, Depends(get_database_client)]


def _stamp(request: Request, config: ApiConfig) -> dict[str, object]:
    return {**version_fields(config), "request_id": request_id_of(request), "timestamp": utc_now()}


@router.get("/health", response_model=HealthResponse)
def health(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **_stamp(request, config),
        "status": "ok",
        "environment": config.environment,
        "service_name": config.api_name,
    }


@router.get("/ready", response_model=ReadinessResponse)
def ready(request: Request, config: ConfigDep, db: DBDep) -> dict[str, object]:
    db_connected = db.can_connect()
    if db_connected:
        missing_tables = [table for table in REQUIRED_TABLES if not db.table_exists(table)]
    else:
        missing_tables = list(REQUIRED_TABLES)
    schema_ready = db_connected and not missing_tables

    return {
        **_stamp(request, config),
        "db_connected": db_connected,
        "schema_ready": schema_ready,
        "missing_tables": missing_tables,
        "ready": schema_ready,
        "database": "reachable" if db_connected else "unreachable",
    }


@router.get("/version", response_model=VersionResponse)
def version(request: Request, config: ConfigDep) -> dict[str, object]:
    return {
        **_stamp(request, config),
        "api_version_path": config.api_version_path,
        "app_version": config.app_version,
        "project": config.api_name,
    }
