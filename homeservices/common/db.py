"""
Database engine construction.
Both the API database client and the maintenance scripts build their engine here
so connection options stay identical across entrypoints.
"""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine


def build_engine(database_url: str, *, busy_timeout_seconds: int = 30) -> Engine:
    """Create a SQLAlchemy engine with the options every entrypoint shares."""

    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        # FastAPI runs sync routes on a threadpool, so pooled SQLite connections cross threads.
        # Writers queue on the file lock for up to `busy_timeout_seconds` instead of failing fast.
        connect_args = {"check_same_thread": False, "timeout": busy_timeout_seconds}
    return create_engine(
        database_url,
        pool_pre_ping=True,
        future=True,
        connect_args=connect_args,
    )
