# This file tests wallet capture at settlement time: topping up a short hold, refunding an
# oversized one, and paying the provider exactly the payable amount.

from __future__ import annotations

from typing import Any

import pytest

from homeservices.api.auth import Principal
from homeservices.api.error_handlers import (
    ConflictError,
    ForbiddenError,
    InsufficientFundsError,
    NotFoundError,
    ValidationFailedError,
)
from tests.services.marketplace_support import ADMIN, Marketplace


def _completed_wallet_request(
    market: Marketplace, *, base_price: float, balance: float, final_amount: float
) -> tuple[Principal, dict[str, Any], dict[str, Any]]:
    category = market.category(base_price=base_price)
    user, location = market.requester(balance=balance)
    provider_principal, provider = market.provider(category)
    created = market.open_request(user, location, category)
    market.lifecycle.accept_by_provider(principal=provider_principal, request_id=created["id"])
    completed = market.lifecycle.advance_by_provider(
        principal=provider_principal, request_id=created["id"], new_status="COMPLETED", amount=final_amount
    )
    return user, provider, completed


def _amounts_by_type(market: Marketplace, request_id: str) -> dict[str, float]:
    return {
        str(row["type"]): float(row["amount"]) for row in market.transactions_for_request(request_id)
    }


def test_final_amount_above_hold_debits_the_difference(marketplace: Marketplace) -> None:
    user, provider, request = _completed_wallet_request(
        marketplace, base_price=50, balance=100, final_amount=70
    )

    result = marketplace.ledger.pay_with_wallet(principal=user, request_id=request["id"])

    assert result["paid_amount"] == 70.0
    assert result["service_request"]["payment_status"] == "PAID"
    assert result["service_request"]["wallet_hold_amount"] == 0.0
    assert [tx["type"] for tx in result["transactions"]] == ["PAYMENT", "PROVIDER_EARNING"]
    assert result["provider_transaction"]["amount"] == 70.0
    assert marketplace.user_balance(user.id) == 30.0
    assert marketplace.provider_balance(provider["id"]) == 70.0
    assert _amounts_by_type(marketplace, request["id"]) == {
        "PAYMENT_HOLD": 50.0,
        "PAYMENT": 20.0,
        "PROVIDER_EARNING": 70.0,
    }


def test_final_amount_below_hold_refunds_the_excess(marketplace: Marketplace) -> None:
    user, provider, request = _completed_wallet_request(
        marketplace, base_price=50, balance=100, final_amount=30
    )

    result = marketplace.ledger.pay_with_wallet(principal=user, request_id=request["id"])

    assert [tx["type"] for tx in result["transactions"]] == ["PAYMENT_HOLD_RELEASE", "PROVIDER_EARNING"]
    assert marketplace.user_balance(user.id) == 70.0
    assert marketplace.provider_balance(provider["id"]) == 30.0
    assert _amounts_by_type(marketplace, request["id"]) == {
        "PAYMENT_HOLD": 50.0,
        "PAYMENT_HOLD_RELEASE": 20.0,
        "PROVIDER_EARNING": 30.0,
    }


def test_final_amount_equal_to_hold_only_pays_provider(marketplace: Marketplace) -> None:
    user, provider, request = _completed_wallet_request(
        marketplace, base_price=50, balance=50, final_amount=50
    )

    result = marketplace.ledger.pay_with_wallet(principal=user, request_id=request["id"])

    assert [tx["type"] for tx in result["transactions"]] == ["PROVIDER_EARNING"]
    assert marketplace.user_balance(user.id) == 0.0
    assert marketplace.provider_balance(provider["id"]) == 50.0


def test_second_payment_is_rejected(marketplace: Marketplace) -> None:
    user, provider, request = _completed_wallet_request(
        marketplace, base_price=50, balance=100, final_amount=70
    )
    marketplace.ledger.pay_with_wallet(principal=user, request_id=request["id"])

    with pytest.raises(ConflictError):
        marketplace.ledger.pay_with_wallet(principal=user, request_id=request["id"])

    assert marketplace.user_balance(user.id) == 30.0
    assert marketplace.provider_balance(provider["id"]) == 70.0


def test_accept_payment_routes_wallet_requests_through_the_ledger(marketplace: Marketplace) -> None:
    user, provider, request = _completed_wallet_request(
        marketplace, base_price=50, balance=100, final_amount=30
    )

    result = marketplace.lifecycle.accept_payment(principal=user, request_id=request["id"])

    assert result["paid_amount"] == 30.0
    assert result["provider_transaction"]["type"] == "PROVIDER_EARNING"
    assert marketplace.user_balance(user.id) == 70.0
    assert marketplace.provider_balance(provider["id"]) == 30.0


def test_payment_fails_without_funds_and_changes_nothing(marketplace: Marketplace) -> None:
    user, provider, request = _completed_wallet_request(
        marketplace, base_price=50, balance=60, final_amount=200
    )

    with pytest.raises(InsufficientFundsError):
        marketplace.ledger.pay_with_wallet(principal=user, request_id=request["id"])

    current = marketplace.lifecycle.get_request(principal=user, request_id=request["id"])
    assert current["payment_status"] == "PENDING_USER_CONFIRMATION"
    assert current["wallet_hold_amount"] == 50.0
    assert marketplace.user_balance(user.id) == 10.0
    assert marketplace.provider_balance(provider["id"]) == 0.0


def test_payment_is_limited_to_the_requester(marketplace: Marketplace) -> None:
    _, _, request = _completed_wallet_request(marketplace, base_price=50, balance=100, final_amount=50)
    stranger, _ = marketplace.requester(balance=500)

    with pytest.raises(NotFoundError):
        marketplace.ledger.pay_with_wallet(principal=stranger, request_id=request["id"])
    with pytest.raises(ForbiddenError):
        marketplace.ledger.pay_with_wallet(principal=ADMIN, request_id=request["id"])


def test_wallet_payment_refuses_cash_requests(marketplace: Marketplace) -> None:
    category = marketplace.category()
    user, location = marketplace.requester(balance=100)
    provider_principal, _ = marketplace.provider(category)
    created = marketplace.open_request(user, location, category, payment_method="CASH")
    marketplace.lifecycle.accept_by_provider(principal=provider_principal, request_id=created["id"])
    marketplace.lifecycle.advance_by_provider(
        principal=provider_principal, request_id=created["id"], new_status="COMPLETED", amount=40
    )

    with pytest.raises(ValidationFailedError) as exc_info:
        marketplace.ledger.pay_with_wallet(principal=user, request_id=created["id"])
    assert exc_info.value.error_code == "NOT_WALLET_PAYMENT"
