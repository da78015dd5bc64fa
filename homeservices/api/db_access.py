# This file wraps SQLAlchemy Core so services run bound-parameter SQL and get plain dicts back.
# Multi-row business transactions borrow one connection through `transaction()` and pass it
# to every helper call so the balance change and its ledger row commit or roll back together.

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from homeservices.common.db import build_engine


class DatabaseClient:
    """Row-as-dict access over one engine, with optional connection reuse."""

    def __init__(
        self,
        *,
        database_url: str | None = None,
        engine: Engine | None = None,
        busy_timeout_seconds: int = 30,
    ) -> None:
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = build_engine(database_url, busy_timeout_seconds=busy_timeout_seconds)
        self._engine: Engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def can_connect(self) -> bool:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def table_exists(self, table_name: str) -> bool:
        return inspect(self._engine).has_table(table_name)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection whose work commits on success and rolls back on any error."""

        with self._engine.begin() as connection:
            yield connection

    def fetch_all(
        self,
        query: str,
        params: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
    ) -> list[dict[str, Any]]:
        if connection is not None:
            rows = connection.execute(text(query), dict(params or {})).mappings().all()
            return [dict(row) for row in rows]
        with self._engine.connect() as own_connection:
            rows = own_connection.execute(text(query), dict(params or {})).mappings().all()
        return [dict(row) for row in rows]

    def fetch_one(
        self,
        query: str,
        params: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
    ) -> dict[str, Any] | None:
        if connection is not None:
            row = connection.execute(text(query), dict(params or {})).mappings().first()
            return dict(row) if row is not None else None
        with self._engine.connect() as own_connection:
            row = own_connection.execute(text(query), dict(params or {})).mappings().first()
        return dict(row) if row is not None else None

    def fetch_scalar(
        self,
        query: str,
        params: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
    ) -> Any:
        if connection is not None:
            return connection.execute(text(query), dict(params or {})).scalar_one()
        with self._engine.connect() as own_connection:
            return own_connection.execute(text(query), dict(params or {})).scalar_one()

    def execute(
        self,
        query: str,
        params: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
    ) -> int:
        """Run a write statement and return the affected row count."""

        if connection is not None:
            return int(connection.execute(text(query), dict(params or {})).rowcount)
        with self._engine.begin() as own_connection:
            return int(own_connection.execute(text(query), dict(params or {})).rowcount)
