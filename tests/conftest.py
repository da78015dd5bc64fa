"""
Shared test configuration.
Environment defaults are set at import time because the API app module is built on import.
Service tests get a fresh SQLite database file per test through the `marketplace` fixture.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

TEST_ENV_DEFAULTS = {
    "PROJECT_NAME": "test-project",
    "ENV": "test",
    "LOG_LEVEL": "INFO",
    "DATABASE_URL": "sqlite://",
    "API_HOST": "0.0.0.0",
    "API_PORT": "8000",
}

for _key, _value in TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _value)

from tests.services.marketplace_support import Marketplace  # noqa: E402


@pytest.fixture(autouse=True)
def base_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure required environment variables are present during tests."""

    for key, value in TEST_ENV_DEFAULTS.items():
        if os.getenv(key) is None:
            monkeypatch.setenv(key, value)


@pytest.fixture()
def marketplace(tmp_path: Path) -> Iterator[Marketplace]:
    market = Marketplace.create(tmp_path / "marketplace.db")
    try:
        yield market
    finally:
        market.dispose()
