#!/usr/bin/env python3
"""
Create marketplace tables and seed reference data.
Applies the schema in order, upserts the default service categories, and creates the admin user.
Safe to re-run: existing tables, categories, and the admin account are left in place.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from homeservices.api.auth import ROLE_ADMIN
from homeservices.api.db_access import DatabaseClient
from homeservices.api.services.directory_service import DirectoryService
from homeservices.common.db import build_engine
from homeservices.common.ddl import apply_schema
from homeservices.common.logging import configure_logging
from homeservices.common.settings import get_settings

LOGGER = logging.getLogger("init_db")

DEFAULT_CATEGORIES: tuple[tuple[str, float, str], ...] = (
    ("Electrician", 50.0, "Wiring, outlets, lighting, and breaker issues."),
    ("Plumber", 45.0, "Leaks, clogs, fixtures, and water heaters."),
    ("Cleaner", 30.0, "Home and post-renovation cleaning."),
    ("Carpenter", 55.0, "Doors, cabinets, furniture, and framing repairs."),
    ("HVAC", 60.0, "Heating, ventilation, and air conditioning service."),
    ("Appliance Repair", 50.0, "Washers, dryers, fridges, and ovens."),
)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply marketplace schema and seed reference data")
    parser.add_argument("--database-url", default=None, help="Defaults to DATABASE_URL from the environment")
    parser.add_argument("--skip-seed", action="store_true", help="Only create tables")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL for this run")
    return parser.parse_args()


def seed(directory: DirectoryService, *, admin_email: str, admin_phone: str) -> dict[str, object]:
    categories = [
        directory.upsert_category(name=name, base_price=price, description=description)
        for name, price, description in DEFAULT_CATEGORIES
    ]
    admin = directory.find_user_by_email(admin_email)
    admin_created = admin is None
    if admin is None:
        admin = directory.create_user(
            first_name="Platform",
            last_name="Admin",
            email=admin_email,
            phone=admin_phone,
            role=ROLE_ADMIN,
        )
    return {
        "categories": [category["name"] for category in categories],
        "admin_id": admin["id"],
        "admin_created": admin_created,
    }


def main() -> None:
    args = parse_args()
    configure_logging(args.log_level)
    settings = get_settings()

    engine = build_engine(args.database_url or settings.DATABASE_URL)
    apply_schema(engine)
    LOGGER.info("schema applied")

    summary: dict[str, object] = {"schema_applied": True}
    if not args.skip_seed:
        directory = DirectoryService(db=DatabaseClient(engine=engine))
        summary.update(
            seed(directory, admin_email=settings.SEED_ADMIN_EMAIL, admin_phone=settings.SEED_ADMIN_PHONE)
        )
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
