"""DDL helpers for marketplace tables."""

from __future__ import annotations

from sqlalchemy.engine import Engine

# Statements run in order; each must stay portable between Postgres and SQLite.
SCHEMA_DDL: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id VARCHAR(32) PRIMARY KEY,
        first_name VARCHAR(100) NOT NULL,
        last_name VARCHAR(100) NOT NULL,
        email VARCHAR(255) NOT NULL UNIQUE,
        phone VARCHAR(32) NOT NULL UNIQUE,
        role VARCHAR(16) NOT NULL DEFAULT 'USER',
        wallet_balance NUMERIC(12, 2) NOT NULL DEFAULT 0,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS service_categories (
        id VARCHAR(32) PRIMARY KEY,
        name VARCHAR(100) NOT NULL UNIQUE,
        description TEXT,
        base_price NUMERIC(12, 2) NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS service_providers (
        id VARCHAR(32) PRIMARY KEY,
        user_id VARCHAR(32) NOT NULL UNIQUE REFERENCES users (id),
        service_category_id VARCHAR(32) NOT NULL REFERENCES service_categories (id),
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        fixed_latitude DOUBLE PRECISION,
        fixed_longitude DOUBLE PRECISION,
        wallet_balance NUMERIC(12, 2) NOT NULL DEFAULT 0,
        average_rating DOUBLE PRECISION NOT NULL DEFAULT 0,
        total_completed_jobs INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_locations (
        id VARCHAR(32) PRIMARY KEY,
        user_id VARCHAR(32) NOT NULL REFERENCES users (id),
        location_name VARCHAR(100),
        latitude DOUBLE PRECISION NOT NULL,
        longitude DOUBLE PRECISION NOT NULL,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS service_requests (
        id VARCHAR(32) PRIMARY KEY,
        user_id VARCHAR(32) NOT NULL REFERENCES users (id),
        provider_id VARCHAR(32) REFERENCES service_providers (id),
        service_category_id VARCHAR(32) NOT NULL REFERENCES service_categories (id),
        user_location_id VARCHAR(32) NOT NULL REFERENCES user_locations (id),
        problem_description TEXT NOT NULL,
        requested_date_time TIMESTAMP WITH TIME ZONE NOT NULL,
        photo_url TEXT,
        status VARCHAR(16) NOT NULL,
        price NUMERIC(12, 2) NOT NULL,
        final_amount NUMERIC(12, 2),
        payment_method VARCHAR(8) NOT NULL,
        payment_status VARCHAR(32) NOT NULL,
        wallet_hold_amount NUMERIC(12, 2) NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL,
        updated_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_service_requests_user_id ON service_requests (user_id)",
    "CREATE INDEX IF NOT EXISTS ix_service_requests_status ON service_requests (status)",
    """
    CREATE TABLE IF NOT EXISTS wallet_transactions (
        id VARCHAR(32) PRIMARY KEY,
        user_id VARCHAR(32) REFERENCES users (id),
        provider_id VARCHAR(32) REFERENCES service_providers (id),
        type VARCHAR(32) NOT NULL,
        amount NUMERIC(12, 2) NOT NULL,
        status VARCHAR(16) NOT NULL,
        related_service_request_id VARCHAR(32),
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_wallet_transactions_user_id ON wallet_transactions (user_id)",
    "CREATE INDEX IF NOT EXISTS ix_wallet_transactions_provider_id ON wallet_transactions (provider_id)",
    """
    CREATE TABLE IF NOT EXISTS ratings (
        id VARCHAR(32) PRIMARY KEY,
        user_id VARCHAR(32) NOT NULL REFERENCES users (id),
        provider_id VARCHAR(32) NOT NULL REFERENCES service_providers (id),
        service_request_id VARCHAR(32) NOT NULL UNIQUE REFERENCES service_requests (id),
        score INTEGER NOT NULL CHECK (score BETWEEN 1 AND 5),
        comment TEXT,
        created_at TIMESTAMP WITH TIME ZONE NOT NULL
    )
    """,
]

REQUIRED_TABLES: tuple[str, ...] = (
    "users",
    "service_categories",
    "service_providers",
    "user_locations",
    "service_requests",
    "wallet_transactions",
    "ratings",
)


def apply_schema(engine: Engine) -> None:
    """Apply marketplace DDL statements in deterministic order."""

    with engine.begin() as connection:
        for statement in SCHEMA_DDL:
            connection.exec_driver_sql(statement)
