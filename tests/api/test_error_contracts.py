# This file tests the shared error payload and the gateway principal headers.

from __future__ import annotations

import pytest

from homeservices.api.dependencies import get_lifecycle_service
from tests.api.support import FakeDBClient, api_test_client, build_test_config


def test_missing_principal_is_unauthenticated() -> None:
    with api_test_client(db_client=FakeDBClient()) as client:
        response = client.get("/api/v1/wallet")

    assert response.status_code == 401
    payload = response.json()
    assert payload["error_code"] == "UNAUTHENTICATED"
    assert set(payload) == {"error_code", "message", "details", "request_id", "timestamp"}


def test_unknown_role_is_unauthenticated() -> None:
    with api_test_client(db_client=FakeDBClient()) as client:
        response = client.get("/api/v1/wallet", headers={"X-User-Id": "u1", "X-User-Role": "ROOT"})

    assert response.status_code == 401


def test_unexpected_errors_return_generic_500() -> None:
    from homeservices.api.app import app

    class ExplodingLifecycle:
        def get_request(self, **_: object) -> dict[str, object]:
            raise RuntimeError("boom")

    app.dependency_overrides[get_lifecycle_service] = lambda: ExplodingLifecycle()
    with api_test_client(config=build_test_config(), raise_server_exceptions=False) as client:
        response = client.get("/api/v1/requests/abc", headers={"X-User-Id": "u1", "X-User-Role": "USER"})

    assert response.status_code == 500
    assert response.json()["error_code"] == "INTERNAL_SERVER_ERROR"
    assert "boom" not in response.text


@pytest.mark.parametrize("path", ["/api/v1/requests", "/api/v1/ratings"])
def test_malformed_body_returns_validation_error(path: str) -> None:
    with api_test_client(db_client=FakeDBClient()) as client:
        response = client.post(path, json={}, headers={"X-User-Id": "u1", "X-User-Role": "USER"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_unknown_route_uses_error_shape() -> None:
    with api_test_client(db_client=FakeDBClient()) as client:
        response = client.get("/api/v1/nowhere", headers={"x-request-id": "trace-404"})

    assert response.status_code == 404
    payload = response.json()
    assert payload["error_code"] == "ROUTE_NOT_FOUND"
    assert payload["request_id"] == "trace-404"
