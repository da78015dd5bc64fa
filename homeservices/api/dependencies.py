# Process-wide service singletons handed to routers through `Depends`.
# The lifecycle service receives the same ledger instance the wallet routes use.

from __future__ import annotations

from functools import lru_cache

from homeservices.api.api_config import ApiConfig, get_api_config
from homeservices.api.db_access import DatabaseClient
from homeservices.api.services.directory_service import DirectoryService
from homeservices.api.services.ledger_service import LedgerService
from homeservices.api.services.lifecycle_service import LifecycleService
from homeservices.api.services.rating_service import RatingService


@lru_cache(maxsize=1)
def get_database_client() -> DatabaseClient:
    config = get_api_config()
    return DatabaseClient(
        database_url=config.database_url,
        busy_timeout_seconds=config.db_busy_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_directory_service() -> DirectoryService:
    return DirectoryService(db=get_database_client())


@lru_cache(maxsize=1)
def get_ledger_service() -> LedgerService:
    config = get_api_config()
    db_client = get_database_client()
    return LedgerService(config=config, db=db_client, directory=get_directory_service())


@lru_cache(maxsize=1)
def get_lifecycle_service() -> LifecycleService:
    config = get_api_config()
    db_client = get_database_client()
    return LifecycleService(
        config=config,
        db=db_client,
        directory=get_directory_service(),
        ledger=get_ledger_service(),
    )


@lru_cache(maxsize=1)
def get_rating_service() -> RatingService:
    return RatingService(db=get_database_client())


def get_config() -> ApiConfig:
    return get_api_config()
