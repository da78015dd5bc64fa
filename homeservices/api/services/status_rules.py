# This module holds the status vocabularies and transition tables for requests and ledger entries.
# Lifecycle and ledger services both import from here so the rules live in one place.
# Balance effect tables drive the ledger audit that recomputes cached balances from APPROVED rows.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Final

STATUS_PENDING: Final[str] = "PENDING"
STATUS_ACCEPTED: Final[str] = "ACCEPTED"
STATUS_REJECTED: Final[str] = "REJECTED"
STATUS_IN_PROGRESS: Final[str] = "IN_PROGRESS"
STATUS_COMPLETED: Final[str] = "COMPLETED"
STATUS_CANCELED: Final[str] = "CANCELED"

REQUEST_STATUSES: Final[tuple[str, ...]] = (
    STATUS_PENDING,
    STATUS_ACCEPTED,
    STATUS_REJECTED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_CANCELED,
)

# Full state table. Provider `advance` only uses the IN_PROGRESS/COMPLETED edges;
# REJECTED and CANCELED edges belong to the reject and cancel operations.
STATUS_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    STATUS_PENDING: frozenset({STATUS_ACCEPTED, STATUS_REJECTED, STATUS_CANCELED}),
    STATUS_ACCEPTED: frozenset({STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_REJECTED, STATUS_CANCELED}),
    STATUS_IN_PROGRESS: frozenset({STATUS_COMPLETED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_REJECTED: frozenset(),
    STATUS_CANCELED: frozenset(),
}
PROVIDER_ADVANCE_TARGETS: Final[frozenset[str]] = frozenset({STATUS_IN_PROGRESS, STATUS_COMPLETED})
RELEASABLE_STATUSES: Final[frozenset[str]] = frozenset({STATUS_PENDING, STATUS_ACCEPTED})

METHOD_WALLET: Final[str] = "WALLET"
METHOD_CASH: Final[str] = "CASH"
PAYMENT_METHODS: Final[tuple[str, ...]] = (METHOD_WALLET, METHOD_CASH)

PAYMENT_UNPAID: Final[str] = "UNPAID"
PAYMENT_HOLD: Final[str] = "HOLD"
PAYMENT_PENDING_CONFIRMATION: Final[str] = "PENDING_USER_CONFIRMATION"
PAYMENT_PAID: Final[str] = "PAID"
PAYMENT_STATUSES: Final[tuple[str, ...]] = (
    PAYMENT_UNPAID,
    PAYMENT_HOLD,
    PAYMENT_PENDING_CONFIRMATION,
    PAYMENT_PAID,
)
SETTLEABLE_PAYMENT_STATUSES: Final[frozenset[str]] = frozenset(
    {PAYMENT_HOLD, PAYMENT_PENDING_CONFIRMATION}
)

TX_ADMIN_TOP_UP: Final[str] = "ADMIN_TOP_UP"
TX_PAYMENT: Final[str] = "PAYMENT"
TX_PAYMENT_HOLD: Final[str] = "PAYMENT_HOLD"
TX_PAYMENT_HOLD_RELEASE: Final[str] = "PAYMENT_HOLD_RELEASE"
TX_CASH_IN_REQUEST: Final[str] = "CASH_IN_REQUEST"
TX_CASH_IN_APPROVED: Final[str] = "CASH_IN_APPROVED"
TX_PROVIDER_EARNING: Final[str] = "PROVIDER_EARNING"
TX_WITHDRAWAL_REQUEST: Final[str] = "WITHDRAWAL_REQUEST"
TX_WITHDRAWAL_APPROVED: Final[str] = "WITHDRAWAL_APPROVED"
TX_ADMIN_ADJUSTMENT: Final[str] = "ADMIN_ADJUSTMENT"

TX_TYPES: Final[tuple[str, ...]] = (
    TX_ADMIN_TOP_UP,
    TX_PAYMENT,
    TX_PAYMENT_HOLD,
    TX_PAYMENT_HOLD_RELEASE,
    TX_CASH_IN_REQUEST,
    TX_CASH_IN_APPROVED,
    TX_PROVIDER_EARNING,
    TX_WITHDRAWAL_REQUEST,
    TX_WITHDRAWAL_APPROVED,
    TX_ADMIN_ADJUSTMENT,
)

TX_PENDING: Final[str] = "PENDING"
TX_APPROVED: Final[str] = "APPROVED"
TX_REJECTED: Final[str] = "REJECTED"
TX_STATUSES: Final[tuple[str, ...]] = (TX_PENDING, TX_APPROVED, TX_REJECTED)

# The only rewrites allowed on an existing ledger row: (type, status) before -> after.
TX_UPGRADES: Final[dict[str, str]] = {
    TX_CASH_IN_REQUEST: TX_CASH_IN_APPROVED,
    TX_WITHDRAWAL_REQUEST: TX_WITHDRAWAL_APPROVED,
}

# Sign applied to APPROVED rows when recomputing a balance, keyed by owner kind.
USER_BALANCE_EFFECTS: Final[dict[str, int]] = {
    TX_ADMIN_TOP_UP: 1,
    TX_PAYMENT_HOLD_RELEASE: 1,
    TX_CASH_IN_APPROVED: 1,
    TX_PAYMENT_HOLD: -1,
    TX_PAYMENT: -1,
}
PROVIDER_BALANCE_EFFECTS: Final[dict[str, int]] = {
    TX_ADMIN_ADJUSTMENT: 1,
    TX_PROVIDER_EARNING: 1,
    TX_WITHDRAWAL_APPROVED: -1,
}


def to_money(value: Any) -> float:
    """Normalize DB numerics (Decimal, int, float, None) to a two-decimal float."""

    if value is None:
        return 0.0
    return round(float(value), 2)


def payable_amount(request: dict[str, Any]) -> float:
    """Amount owed on a request: the final amount if set, else the quoted price."""

    final_amount = request.get("final_amount")
    if final_amount is not None and to_money(final_amount) > 0:
        return to_money(final_amount)
    return to_money(request.get("price"))


def timestamp_now() -> str:
    """ISO-8601 UTC timestamp bound as a parameter for timestamp columns."""

    return datetime.now(tz=UTC).isoformat()
