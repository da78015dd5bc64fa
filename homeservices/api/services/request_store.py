# This module owns the SQL for service request rows.
# Lifecycle and ledger services both mutate requests, so reads and version-checked writes live here.
# Every update bumps `version` and matches the version the caller read, which turns a lost
# read-then-write race into a ConflictError instead of a silent double write.

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.engine import Connection

from homeservices.api.db_access import DatabaseClient
from homeservices.api.error_handlers import ConflictError
from homeservices.api.services.status_rules import timestamp_now, to_money

REQUEST_COLUMNS = (
    "id",
    "user_id",
    "provider_id",
    "service_category_id",
    "user_location_id",
    "problem_description",
    "requested_date_time",
    "photo_url",
    "status",
    "price",
    "final_amount",
    "payment_method",
    "payment_status",
    "wallet_hold_amount",
    "version",
    "created_at",
    "updated_at",
)
MUTABLE_COLUMNS = frozenset(
    {"provider_id", "status", "price", "final_amount", "payment_status", "wallet_hold_amount"}
)
_SELECT_SQL = f"SELECT {', '.join(REQUEST_COLUMNS)} FROM service_requests"


def shape_request(row: dict[str, Any]) -> dict[str, Any]:
    shaped = dict(row)
    shaped["price"] = to_money(row.get("price"))
    shaped["final_amount"] = to_money(row["final_amount"]) if row.get("final_amount") is not None else None
    shaped["wallet_hold_amount"] = to_money(row.get("wallet_hold_amount"))
    shaped["version"] = int(row.get("version") or 0)
    return shaped


def get_request(
    db: DatabaseClient,
    request_id: str,
    *,
    connection: Connection | None = None,
) -> dict[str, Any] | None:
    row = db.fetch_one(f"{_SELECT_SQL} WHERE id = :id", {"id": request_id}, connection=connection)
    return shape_request(row) if row is not None else None


def insert_request(db: DatabaseClient, values: dict[str, Any], *, connection: Connection) -> dict[str, Any]:
    now = timestamp_now()
    params = {
        "id": uuid.uuid4().hex,
        "provider_id": None,
        "photo_url": None,
        "final_amount": None,
        "version": 1,
        "created_at": now,
        "updated_at": now,
        **values,
    }
    db.execute(
        f"""
        INSERT INTO service_requests ({', '.join(REQUEST_COLUMNS)})
        VALUES ({', '.join(':' + column for column in REQUEST_COLUMNS)})
        """,
        params,
        connection=connection,
    )
    created = get_request(db, params["id"], connection=connection)
    if created is None:
        raise RuntimeError(f"Service request {params['id']} vanished after insert")
    return created


def update_request(
    db: DatabaseClient,
    request: dict[str, Any],
    changes: dict[str, Any],
    *,
    connection: Connection,
) -> dict[str, Any]:
    """Apply `changes` if the row still carries the version the caller read."""

    unknown = set(changes) - MUTABLE_COLUMNS
    if unknown:
        raise ValueError(f"Columns are not mutable: {sorted(unknown)}")

    assignments = ", ".join(f"{column} = :{column}" for column in sorted(changes))
    affected = db.execute(
        f"""
        UPDATE service_requests
        SET {assignments}, version = version + 1, updated_at = :updated_at
        WHERE id = :id AND version = :expected_version
        """,
        {
            **changes,
            "updated_at": timestamp_now(),
            "id": request["id"],
            "expected_version": request["version"],
        },
        connection=connection,
    )
    if affected != 1:
        raise ConflictError(
            "Service request was modified by another operation; retry with fresh state.",
            error_code="REQUEST_MODIFIED",
            details={"request_id": request["id"]},
        )
    updated = get_request(db, request["id"], connection=connection)
    if updated is None:
        raise RuntimeError(f"Service request {request['id']} vanished during update")
    return updated


def list_requests_with_location(
    db: DatabaseClient,
    where: str,
    params: dict[str, Any],
    *,
    order_by: str = "r.created_at DESC, r.id",
    connection: Connection | None = None,
) -> list[dict[str, Any]]:
    """Requests matching `where` (aliased `r`), each with its job site coordinates attached."""

    columns = ", ".join(f"r.{column}" for column in REQUEST_COLUMNS)
    rows = db.fetch_all(
        f"""
        SELECT {columns}, l.latitude AS location_latitude, l.longitude AS location_longitude
        FROM service_requests r
        LEFT JOIN user_locations l ON l.id = r.user_location_id
        WHERE {where}
        ORDER BY {order_by}
        """,
        params,
        connection=connection,
    )
    return [shape_request(row) for row in rows]
