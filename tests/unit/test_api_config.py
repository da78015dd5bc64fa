"""
Unit tests for API configuration loading.
Environment parsing, version path rules, and default sort normalization.
"""

import pytest
from pydantic import ValidationError

from homeservices.api.api_config import ApiConfig, load_api_config


def test_load_api_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./local.db")
    monkeypatch.setenv("API_DEFAULT_PAGE_SIZE", "10")
    monkeypatch.setenv("API_ENABLE_REQUEST_LOGGING", "yes")
    monkeypatch.setenv("API_ALLOWED_ORIGINS", "http://a.test, http://b.test")

    config = load_api_config(load_env=False)

    assert config.database_url == "sqlite:///./local.db"
    assert config.default_page_size == 10
    assert config.enable_request_logging is True
    assert config.allowed_origins == ["http://a.test", "http://b.test"]
    assert config.api_version_label() == "v1"


def test_load_api_config_requires_database_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "")
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        load_api_config(load_env=False)


def test_load_api_config_rejects_bad_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_ENABLE_REQUEST_LOGGING", "maybe")
    with pytest.raises(ValueError, match="boolean-like"):
        load_api_config(load_env=False)


@pytest.mark.parametrize("path", ["api/v1", "/api", "/api/latest"])
def test_api_version_path_must_be_versioned(path: str) -> None:
    with pytest.raises(ValidationError):
        ApiConfig(database_url="sqlite://", api_version_path=path)


def test_page_sizes_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        ApiConfig(database_url="sqlite://", max_page_size=0)


def test_default_sort_order_is_normalized() -> None:
    config = ApiConfig(database_url="sqlite://", default_sort_order=" Amount ")
    assert config.default_sort_order == "amount:asc"

    with pytest.raises(ValidationError):
        ApiConfig(database_url="sqlite://", default_sort_order="amount:sideways")
