# This file builds a wired set of marketplace services over a throwaway SQLite database.
# Tests use it to seed users, providers, and requests without going through HTTP.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import ROLE_ADMIN, ROLE_PROVIDER, ROLE_USER, Principal
from homeservices.api.db_access import DatabaseClient
from homeservices.api.services.directory_service import DirectoryService
from homeservices.api.services.ledger_service import LedgerService
from homeservices.api.services.lifecycle_service import LifecycleService
from homeservices.api.services.rating_service import RatingService
from homeservices.common.db import build_engine
from homeservices.common.ddl import apply_schema

ADMIN = Principal(id="admin-principal", role=ROLE_ADMIN)


@dataclass
class Marketplace:
    config: ApiConfig
    db: DatabaseClient
    directory: DirectoryService
    ledger: LedgerService
    lifecycle: LifecycleService
    ratings: RatingService

    @classmethod
    def create(cls, db_path: Path) -> Marketplace:
        database_url = f"sqlite:///{db_path}"
        engine = build_engine(database_url)
        apply_schema(engine)
        config = ApiConfig(database_url=database_url, environment="test", default_page_size=2, max_page_size=5)
        db = DatabaseClient(engine=engine)
        directory = DirectoryService(db=db)
        ledger = LedgerService(config=config, db=db, directory=directory)
        lifecycle = LifecycleService(config=config, db=db, directory=directory, ledger=ledger)
        return cls(
            config=config,
            db=db,
            directory=directory,
            ledger=ledger,
            lifecycle=lifecycle,
            ratings=RatingService(db=db),
        )

    def dispose(self) -> None:
        self.db.engine.dispose()

    def category(self, name: str = "Plumber", base_price: float = 50.0) -> dict[str, Any]:
        return self.directory.upsert_category(name=name, base_price=base_price)

    def requester(self, *, balance: float = 0.0) -> tuple[Principal, dict[str, Any]]:
        suffix = uuid.uuid4().hex[:10]
        user = self.directory.create_user(
            first_name="Rita",
            last_name="Requester",
            email=f"user-{suffix}@example.com",
            phone=f"+1{suffix}",
        )
        if balance > 0:
            self.ledger.top_up_user(principal=ADMIN, user_id=user["id"], amount=balance)
        location = self.directory.create_location(
            user_id=user["id"], latitude=40.71, longitude=-74.0, location_name="Home"
        )
        return Principal(id=user["id"], role=ROLE_USER), location

    def provider(
        self,
        category: dict[str, Any],
        *,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> tuple[Principal, dict[str, Any]]:
        suffix = uuid.uuid4().hex[:10]
        user = self.directory.create_user(
            first_name="Pat",
            last_name="Provider",
            email=f"provider-{suffix}@example.com",
            phone=f"+2{suffix}",
        )
        provider = self.directory.create_provider(
            user_id=user["id"],
            service_category_id=category["id"],
            fixed_latitude=latitude,
            fixed_longitude=longitude,
        )
        return Principal(id=user["id"], role=ROLE_PROVIDER), provider

    def open_request(
        self,
        principal: Principal,
        location: dict[str, Any],
        category: dict[str, Any],
        *,
        payment_method: str = "WALLET",
    ) -> dict[str, Any]:
        return self.lifecycle.create(
            principal=principal,
            service_category_id=category["id"],
            user_location_id=location["id"],
            problem_description="Kitchen sink is leaking under the cabinet.",
            requested_date_time=datetime.now(tz=UTC) + timedelta(days=1),
            payment_method=payment_method,
        )

    def user_balance(self, user_id: str) -> float:
        user = self.directory.find_user(user_id)
        assert user is not None
        return user["wallet_balance"]

    def provider_balance(self, provider_id: str) -> float:
        provider = self.directory.find_provider(provider_id)
        assert provider is not None
        return provider["wallet_balance"]

    def transactions_for_request(self, request_id: str) -> list[dict[str, Any]]:
        return self.db.fetch_all(
            """
            SELECT type, amount, status, user_id, provider_id FROM wallet_transactions
            WHERE related_service_request_id = :request_id
            ORDER BY created_at, id
            """,
            {"request_id": request_id},
        )

    def transaction_types(self, request_id: str) -> list[str]:
        return [str(row["type"]) for row in self.transactions_for_request(request_id)]
