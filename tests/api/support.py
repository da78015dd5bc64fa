# This file holds helpers shared by the API endpoint tests.
# Endpoint tests bind the service dependencies to a per-test SQLite marketplace, or to a stub
# database when only health and readiness are under test.

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from fastapi.testclient import TestClient

from homeservices.api.api_config import ApiConfig
from homeservices.api.app import app
from homeservices.api.auth import Principal
from homeservices.api.dependencies import (
    get_config,
    get_database_client,
    get_directory_service,
    get_ledger_service,
    get_lifecycle_service,
    get_rating_service,
)
from homeservices.common.ddl import REQUIRED_TABLES
from tests.services.marketplace_support import Marketplace


def build_test_config(**overrides: Any) -> ApiConfig:
    values: dict[str, Any] = {
        "api_name": "Test Marketplace API",
        "environment": "test",
        "database_url": "sqlite://",
        "default_page_size": 2,
        "max_page_size": 5,
    }
    values.update(overrides)
    return ApiConfig(**values)


def auth_headers(principal: Principal) -> dict[str, str]:
    return {"X-User-Id": principal.id, "X-User-Role": principal.role}


class FakeDBClient:
    """Stands in for DatabaseClient for the readiness check."""

    def __init__(self, *, connected: bool = True, existing_tables: set[str] | None = None) -> None:
        self.connected = connected
        self.tables = set(REQUIRED_TABLES) if existing_tables is None else existing_tables

    def can_connect(self) -> bool:
        return self.connected

    def table_exists(self, table_name: str) -> bool:
        return self.connected and table_name in self.tables


def _overrides_for(
    config: ApiConfig, db_client: Any | None, market: Marketplace | None
) -> dict[Callable[..., Any], Callable[[], Any]]:
    overrides: dict[Callable[..., Any], Callable[[], Any]] = {get_config: lambda: config}
    if market is not None:
        overrides.update(
            {
                get_database_client: lambda: market.db,
                get_directory_service: lambda: market.directory,
                get_ledger_service: lambda: market.ledger,
                get_lifecycle_service: lambda: market.lifecycle,
                get_rating_service: lambda: market.ratings,
            }
        )
    elif db_client is not None:
        overrides[get_database_client] = lambda: db_client
    return overrides


@contextmanager
def api_test_client(
    *,
    config: ApiConfig | None = None,
    db_client: Any | None = None,
    market: Marketplace | None = None,
    raise_server_exceptions: bool = True,
) -> Iterator[TestClient]:
    app.dependency_overrides.update(_overrides_for(config or build_test_config(), db_client, market))
    try:
        with TestClient(app, raise_server_exceptions=raise_server_exceptions) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
