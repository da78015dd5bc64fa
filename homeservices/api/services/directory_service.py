# This file implements the user, provider, category, and location directory used by the core services.
# Lookups accept an optional connection so they can run inside a lifecycle or ledger transaction.
# Create helpers back the seeding script and test fixtures; balances are never written here.

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.engine import Connection

from homeservices.api.auth import ROLE_PROVIDER, ROLE_USER, ROLES
from homeservices.api.db_access import DatabaseClient
from homeservices.api.services.status_rules import timestamp_now, to_money


def _shape_balance_row(row: dict[str, Any] | None) -> dict[str, Any] | None:
    if row is None:
        return None
    shaped = dict(row)
    shaped["wallet_balance"] = to_money(row.get("wallet_balance"))
    if "is_active" in shaped:
        shaped["is_active"] = bool(shaped["is_active"])
    return shaped


class DirectoryService:
    """Simple stores for users, providers, categories, and user locations."""

    def __init__(self, *, db: DatabaseClient) -> None:
        self.db = db

    def find_user(self, user_id: str, *, connection: Connection | None = None) -> dict[str, Any] | None:
        row = self.db.fetch_one(
            """
            SELECT id, first_name, last_name, email, phone, role, wallet_balance, is_active
            FROM users WHERE id = :id
            """,
            {"id": user_id},
            connection=connection,
        )
        return _shape_balance_row(row)

    def find_user_by_email(self, email: str) -> dict[str, Any] | None:
        row = self.db.fetch_one(
            """
            SELECT id, first_name, last_name, email, phone, role, wallet_balance, is_active
            FROM users WHERE email = :email
            """,
            {"email": email.strip().lower()},
        )
        return _shape_balance_row(row)

    def find_provider(
        self, provider_id: str, *, connection: Connection | None = None
    ) -> dict[str, Any] | None:
        row = self.db.fetch_one(
            """
            SELECT id, user_id, service_category_id, is_active, fixed_latitude, fixed_longitude,
                   wallet_balance, average_rating, total_completed_jobs
            FROM service_providers WHERE id = :id
            """,
            {"id": provider_id},
            connection=connection,
        )
        return _shape_balance_row(row)

    def find_provider_by_user(
        self, user_id: str, *, connection: Connection | None = None
    ) -> dict[str, Any] | None:
        row = self.db.fetch_one(
            """
            SELECT id, user_id, service_category_id, is_active, fixed_latitude, fixed_longitude,
                   wallet_balance, average_rating, total_completed_jobs
            FROM service_providers WHERE user_id = :user_id
            """,
            {"user_id": user_id},
            connection=connection,
        )
        return _shape_balance_row(row)

    def find_active_category(
        self, category_id: str, *, connection: Connection | None = None
    ) -> dict[str, Any] | None:
        row = self.db.fetch_one(
            """
            SELECT id, name, description, base_price, is_active
            FROM service_categories
            WHERE id = :id AND is_active = :is_active
            """,
            {"id": category_id, "is_active": True},
            connection=connection,
        )
        if row is None:
            return None
        row["base_price"] = to_money(row["base_price"])
        row["is_active"] = bool(row["is_active"])
        return row

    def find_location(
        self, location_id: str, *, user_id: str, connection: Connection | None = None
    ) -> dict[str, Any] | None:
        return self.db.fetch_one(
            """
            SELECT id, user_id, location_name, latitude, longitude
            FROM user_locations WHERE id = :id AND user_id = :user_id
            """,
            {"id": location_id, "user_id": user_id},
            connection=connection,
        )

    def create_user(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        role: str = ROLE_USER,
    ) -> dict[str, Any]:
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role!r}")
        user_id = uuid.uuid4().hex
        self.db.execute(
            """
            INSERT INTO users (id, first_name, last_name, email, phone, role, wallet_balance, is_active, created_at)
            VALUES (:id, :first_name, :last_name, :email, :phone, :role, 0, :is_active, :created_at)
            """,
            {
                "id": user_id,
                "first_name": first_name,
                "last_name": last_name,
                "email": email.strip().lower(),
                "phone": phone,
                "role": role,
                "is_active": True,
                "created_at": timestamp_now(),
            },
        )
        created = self.find_user(user_id)
        if created is None:
            raise RuntimeError("Directory row vanished after insert")
        return created

    def upsert_category(
        self, *, name: str, base_price: float, description: str | None = None, is_active: bool = True
    ) -> dict[str, Any]:
        existing = self.db.fetch_one(
            "SELECT id FROM service_categories WHERE name = :name", {"name": name}
        )
        if existing is not None:
            category_id = str(existing["id"])
            self.db.execute(
                """
                UPDATE service_categories
                SET description = :description, base_price = :base_price, is_active = :is_active
                WHERE id = :id
                """,
                {
                    "id": category_id,
                    "description": description,
                    "base_price": float(base_price),
                    "is_active": is_active,
                },
            )
        else:
            category_id = uuid.uuid4().hex
            self.db.execute(
                """
                INSERT INTO service_categories (id, name, description, base_price, is_active, created_at)
                VALUES (:id, :name, :description, :base_price, :is_active, :created_at)
                """,
                {
                    "id": category_id,
                    "name": name,
                    "description": description,
                    "base_price": float(base_price),
                    "is_active": is_active,
                    "created_at": timestamp_now(),
                },
            )
        return {
            "id": category_id,
            "name": name,
            "description": description,
            "base_price": to_money(base_price),
            "is_active": is_active,
        }

    def create_provider(
        self,
        *,
        user_id: str,
        service_category_id: str,
        fixed_latitude: float | None = None,
        fixed_longitude: float | None = None,
    ) -> dict[str, Any]:
        provider_id = uuid.uuid4().hex
        with self.db.transaction() as connection:
            self.db.execute(
                """
                INSERT INTO service_providers (
                    id, user_id, service_category_id, is_active, fixed_latitude, fixed_longitude,
                    wallet_balance, average_rating, total_completed_jobs, created_at
                ) VALUES (
                    :id, :user_id, :service_category_id, :is_active, :fixed_latitude, :fixed_longitude,
                    0, 0, 0, :created_at
                )
                """,
                {
                    "id": provider_id,
                    "user_id": user_id,
                    "service_category_id": service_category_id,
                    "is_active": True,
                    "fixed_latitude": fixed_latitude,
                    "fixed_longitude": fixed_longitude,
                    "created_at": timestamp_now(),
                },
                connection=connection,
            )
            self.db.execute(
                "UPDATE users SET role = :role WHERE id = :id",
                {"role": ROLE_PROVIDER, "id": user_id},
                connection=connection,
            )
        created = self.find_provider(provider_id)
        if created is None:
            raise RuntimeError("Directory row vanished after insert")
        return created

    def create_location(
        self,
        *,
        user_id: str,
        latitude: float,
        longitude: float,
        location_name: str | None = None,
    ) -> dict[str, Any]:
        location_id = uuid.uuid4().hex
        self.db.execute(
            """
            INSERT INTO user_locations (id, user_id, location_name, latitude, longitude, created_at)
            VALUES (:id, :user_id, :location_name, :latitude, :longitude, :created_at)
            """,
            {
                "id": location_id,
                "user_id": user_id,
                "location_name": location_name,
                "latitude": latitude,
                "longitude": longitude,
                "created_at": timestamp_now(),
            },
        )
        return {
            "id": location_id,
            "user_id": user_id,
            "location_name": location_name,
            "latitude": latitude,
            "longitude": longitude,
        }
