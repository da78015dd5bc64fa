# This file tests requester and provider request endpoints end to end over HTTP.
# Services run against a per-test SQLite database; principals travel as gateway headers.

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from tests.api.support import api_test_client, auth_headers
from tests.services.marketplace_support import Marketplace


def _create_payload(category_id: str, location_id: str, method: str = "WALLET") -> dict[str, object]:
    return {
        "service_category_id": category_id,
        "user_location_id": location_id,
        "problem_description": "Bathroom fan stopped working.",
        "requested_date_time": (datetime.now(tz=UTC) + timedelta(days=2)).isoformat(),
        "payment_method": method,
    }


def test_create_request_returns_envelope_with_hold(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, location = marketplace.requester(balance=80)

    with api_test_client(market=marketplace) as client:
        response = client.post(
            "/api/v1/requests",
            json=_create_payload(category["id"], location["id"], "wallet"),
            headers=auth_headers(user),
        )

    assert response.status_code == 201
    payload = response.json()
    assert payload["api_version"] == "v1"
    assert payload["request_id"]
    assert payload["generated_at"]
    data = payload["data"]
    assert data["status"] == "PENDING"
    assert data["payment_method"] == "WALLET"
    assert data["payment_status"] == "HOLD"
    assert data["wallet_hold_amount"] == 50.0
    assert marketplace.user_balance(user.id) == 30.0


def test_create_request_rejects_bad_payment_method(marketplace: Marketplace) -> None:
    category = marketplace.category()
    user, location = marketplace.requester()

    with api_test_client(market=marketplace) as client:
        response = client.post(
            "/api/v1/requests",
            json=_create_payload(category["id"], location["id"], "CHEQUE"),
            headers=auth_headers(user),
        )

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_PAYMENT_METHOD"


def test_create_request_reports_insufficient_funds(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, location = marketplace.requester(balance=5)

    with api_test_client(market=marketplace) as client:
        response = client.post(
            "/api/v1/requests",
            json=_create_payload(category["id"], location["id"]),
            headers=auth_headers(user),
        )

    assert response.status_code == 400
    assert response.json()["error_code"] == "INSUFFICIENT_FUNDS"


def test_requester_status_route_only_cancels(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, location = marketplace.requester(balance=50)
    created = marketplace.open_request(user, location, category)

    with api_test_client(market=marketplace) as client:
        refused = client.patch(
            f"/api/v1/requests/{created['id']}/status",
            json={"status": "COMPLETED"},
            headers=auth_headers(user),
        )
        canceled = client.patch(
            f"/api/v1/requests/{created['id']}/status",
            json={"status": "canceled"},
            headers=auth_headers(user),
        )

    assert refused.status_code == 400
    assert refused.json()["error_code"] == "INVALID_USER_STATUS"
    assert canceled.status_code == 200
    assert canceled.json()["data"]["status"] == "CANCELED"
    assert marketplace.user_balance(user.id) == 50.0


def test_provider_routes_drive_request_to_completion(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, location = marketplace.requester()
    provider_principal, provider = marketplace.provider(category)
    created = marketplace.open_request(user, location, category, payment_method="CASH")
    headers = auth_headers(provider_principal)

    with api_test_client(market=marketplace) as client:
        accepted = client.patch(f"/api/v1/provider/requests/{created['id']}/accept", headers=headers)
        again = client.patch(f"/api/v1/provider/requests/{created['id']}/accept", headers=headers)
        started = client.patch(
            f"/api/v1/provider/requests/{created['id']}/status",
            json={"status": "in_progress"},
            headers=headers,
        )
        missing_amount = client.patch(
            f"/api/v1/provider/requests/{created['id']}/complete", json={}, headers=headers
        )
        completed = client.patch(
            f"/api/v1/provider/requests/{created['id']}/complete", json={"amount": 45}, headers=headers
        )
        confirmed = client.patch(f"/api/v1/requests/{created['id']}/confirm", headers=auth_headers(user))

    assert accepted.status_code == 200
    assert accepted.json()["data"]["provider_id"] == provider["id"]
    assert again.status_code == 404
    assert again.json()["error_code"] == "REQUEST_NOT_CLAIMABLE"
    assert started.json()["data"]["status"] == "IN_PROGRESS"
    assert missing_amount.status_code == 400
    assert missing_amount.json()["error_code"] == "AMOUNT_REQUIRED"
    assert completed.json()["data"]["final_amount"] == 45.0
    assert completed.json()["data"]["payment_status"] == "PENDING_USER_CONFIRMATION"
    assert confirmed.status_code == 200
    assert confirmed.json()["data"]["payment_status"] == "PAID"


def test_provider_reject_route_releases_hold(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, location = marketplace.requester(balance=50)
    provider_principal, _ = marketplace.provider(category)
    created = marketplace.open_request(user, location, category)

    with api_test_client(market=marketplace) as client:
        response = client.patch(
            f"/api/v1/provider/requests/{created['id']}/reject", headers=auth_headers(provider_principal)
        )

    assert response.status_code == 200
    assert response.json()["data"]["status"] == "REJECTED"
    assert marketplace.user_balance(user.id) == 50.0


def test_get_request_hides_other_peoples_requests(marketplace: Marketplace) -> None:
    category = marketplace.category()
    user, location = marketplace.requester()
    stranger, _ = marketplace.requester()
    created = marketplace.open_request(user, location, category, payment_method="CASH")

    with api_test_client(market=marketplace) as client:
        own = client.get(f"/api/v1/requests/{created['id']}", headers=auth_headers(user))
        other = client.get(f"/api/v1/requests/{created['id']}", headers=auth_headers(stranger))

    assert own.status_code == 200
    assert own.json()["data"]["id"] == created["id"]
    assert other.status_code == 404


def test_cash_in_route_records_pending_transaction(marketplace: Marketplace) -> None:
    category = marketplace.category()
    user, location = marketplace.requester()
    provider_principal, _ = marketplace.provider(category)
    created = marketplace.open_request(user, location, category, payment_method="CASH")
    marketplace.lifecycle.accept_by_provider(principal=provider_principal, request_id=created["id"])

    with api_test_client(market=marketplace) as client:
        response = client.post(
            f"/api/v1/provider/requests/{created['id']}/cash-in",
            json={"amount": 20},
            headers=auth_headers(provider_principal),
        )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["type"] == "CASH_IN_REQUEST"
    assert data["status"] == "PENDING"


def test_provider_queue_route_orders_by_assignment_and_distance(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, home = marketplace.requester(balance=100)
    cabin = marketplace.directory.create_location(user_id=user.id, latitude=40.80, longitude=-74.0)
    provider_principal, _ = marketplace.provider(category, latitude=40.71, longitude=-74.0)
    far_open = marketplace.open_request(user, cabin, category)
    near_open = marketplace.open_request(user, home, category)

    with api_test_client(market=marketplace) as client:
        response = client.get("/api/v1/provider/requests", headers=auth_headers(provider_principal))
        denied = client.get("/api/v1/provider/requests", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data] == [near_open["id"], far_open["id"]]
    assert data[0]["distance_km"] == 0.0
    assert data[1]["distance_km"] > 9.0
    assert data[0]["is_assigned_to_me"] is False
    assert denied.status_code == 403


def test_provider_queue_route_requires_location(marketplace: Marketplace) -> None:
    category = marketplace.category()
    provider_principal, _ = marketplace.provider(category)

    with api_test_client(market=marketplace) as client:
        response = client.get("/api/v1/provider/requests", headers=auth_headers(provider_principal))

    assert response.status_code == 400
    assert response.json()["error_code"] == "PROVIDER_LOCATION_MISSING"


def test_pending_approvals_route_is_not_shadowed_by_request_lookup(marketplace: Marketplace) -> None:
    category = marketplace.category(base_price=50)
    user, location = marketplace.requester(balance=100)
    provider_principal, _ = marketplace.provider(category)
    created = marketplace.open_request(user, location, category)
    marketplace.lifecycle.accept_by_provider(principal=provider_principal, request_id=created["id"])
    marketplace.lifecycle.advance_by_provider(
        principal=provider_principal, request_id=created["id"], new_status="COMPLETED", amount=45
    )

    with api_test_client(market=marketplace) as client:
        response = client.get("/api/v1/requests/my/pending-approvals", headers=auth_headers(user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert [item["id"] for item in data] == [created["id"]]
    assert data[0]["payment_status"] == "PENDING_USER_CONFIRMATION"
    assert data[0]["final_amount"] == 45.0
