# This file implements the wallet ledger: balance mutations plus append-only transaction rows.
# It is the only writer of `wallet_balance` on users and providers.
# Every balance change and the ledger row that explains it run on the same connection, so they
# commit together or not at all. Debits are conditional updates, which keeps balances non-negative
# even when two requests race for the same funds.

from __future__ import annotations

import logging
import math
import uuid
from typing import Any

from sqlalchemy.engine import Connection

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import ROLE_ADMIN, ROLE_PROVIDER, ROLE_USER, Principal, require_role
from homeservices.api.db_access import DatabaseClient
from homeservices.api.error_handlers import (
    ConflictError,
    InsufficientFundsError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from homeservices.api.pagination import PageWindow, SortSpec
from homeservices.api.services import request_store
from homeservices.api.services.directory_service import DirectoryService
from homeservices.api.services.status_rules import (
    METHOD_WALLET,
    PAYMENT_HOLD,
    PAYMENT_PAID,
    PAYMENT_UNPAID,
    PROVIDER_BALANCE_EFFECTS,
    SETTLEABLE_PAYMENT_STATUSES,
    STATUS_COMPLETED,
    TX_ADMIN_ADJUSTMENT,
    TX_ADMIN_TOP_UP,
    TX_APPROVED,
    TX_CASH_IN_REQUEST,
    TX_PAYMENT,
    TX_PAYMENT_HOLD,
    TX_PAYMENT_HOLD_RELEASE,
    TX_PENDING,
    TX_PROVIDER_EARNING,
    TX_REJECTED,
    TX_UPGRADES,
    TX_WITHDRAWAL_REQUEST,
    USER_BALANCE_EFFECTS,
    payable_amount,
    timestamp_now,
    to_money,
)

LOGGER = logging.getLogger("ledger")

TRANSACTION_SORT_FIELD_MAP: dict[str, str] = {
    "created_at": "created_at",
    "amount": "amount",
}

_TX_COLUMNS = "id, user_id, provider_id, type, amount, status, related_service_request_id, created_at"

# owner kind -> (balance table, transaction owner column, effect table)
_OWNER_KINDS: dict[str, tuple[str, str, dict[str, int]]] = {
    "users": ("users", "user_id", USER_BALANCE_EFFECTS),
    "providers": ("service_providers", "provider_id", PROVIDER_BALANCE_EFFECTS),
}


def _shape_transaction(row: dict[str, Any]) -> dict[str, Any]:
    shaped = dict(row)
    shaped["amount"] = to_money(row.get("amount"))
    return shaped


def _require_positive(amount: Any, *, field: str = "amount") -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError) as exc:
        raise ValidationFailedError(f"{field} must be a number.", error_code="INVALID_AMOUNT") from exc
    if not math.isfinite(value) or to_money(value) <= 0:
        raise ValidationFailedError(f"{field} must be at least 0.01.", error_code="INVALID_AMOUNT")
    return to_money(value)


class LedgerService:
    """Wallet balance mutations paired with ledger rows."""

    def __init__(self, *, config: ApiConfig, db: DatabaseClient, directory: DirectoryService) -> None:
        self.config = config
        self.db = db
        self.directory = directory

    def _insert_transaction(
        self,
        *,
        connection: Connection,
        tx_type: str,
        amount: float,
        status: str,
        user_id: str | None = None,
        provider_id: str | None = None,
        related_request_id: str | None = None,
    ) -> dict[str, Any]:
        row = {
            "id": uuid.uuid4().hex,
            "user_id": user_id,
            "provider_id": provider_id,
            "type": tx_type,
            "amount": to_money(amount),
            "status": status,
            "related_service_request_id": related_request_id,
            "created_at": timestamp_now(),
        }
        self.db.execute(
            f"""
            INSERT INTO wallet_transactions ({_TX_COLUMNS})
            VALUES (:id, :user_id, :provider_id, :type, :amount, :status,
                    :related_service_request_id, :created_at)
            """,
            row,
            connection=connection,
        )
        LOGGER.info(
            "ledger entry type=%s status=%s amount=%.2f user_id=%s provider_id=%s request_id=%s",
            tx_type,
            status,
            row["amount"],
            user_id,
            provider_id,
            related_request_id,
        )
        return row

    def _get_transaction(self, tx_id: str, *, connection: Connection | None = None) -> dict[str, Any] | None:
        row = self.db.fetch_one(
            f"SELECT {_TX_COLUMNS} FROM wallet_transactions WHERE id = :id",
            {"id": tx_id},
            connection=connection,
        )
        return _shape_transaction(row) if row is not None else None

    def _change_balance(
        self,
        *,
        connection: Connection,
        owner_kind: str,
        owner_id: str,
        delta: float,
    ) -> None:
        table = _OWNER_KINDS[owner_kind][0]
        delta = to_money(delta)
        if delta >= 0:
            affected = self.db.execute(
                f"UPDATE {table} SET wallet_balance = wallet_balance + :delta WHERE id = :id",
                {"delta": delta, "id": owner_id},
                connection=connection,
            )
            if affected != 1:
                raise NotFoundError(f"Wallet owner not found: {owner_id}", error_code="WALLET_OWNER_NOT_FOUND")
            return

        debit = -delta
        affected = self.db.execute(
            f"""
            UPDATE {table} SET wallet_balance = wallet_balance - :debit
            WHERE id = :id AND wallet_balance >= :debit
            """,
            {"debit": debit, "id": owner_id},
            connection=connection,
        )
        if affected == 1:
            return
        exists = self.db.fetch_one(
            f"SELECT id FROM {table} WHERE id = :id", {"id": owner_id}, connection=connection
        )
        if exists is None:
            raise NotFoundError(f"Wallet owner not found: {owner_id}", error_code="WALLET_OWNER_NOT_FOUND")
        raise InsufficientFundsError("Insufficient wallet balance.", details={"required": debit})

    def _upgrade_pending(
        self, *, connection: Connection, tx: dict[str, Any]
    ) -> dict[str, Any]:
        """Rewrite a PENDING request-style row to its approved type in one statement."""

        new_type = TX_UPGRADES[tx["type"]]
        affected = self.db.execute(
            """
            UPDATE wallet_transactions SET type = :new_type, status = :approved
            WHERE id = :id AND type = :old_type AND status = :pending
            """,
            {
                "new_type": new_type,
                "approved": TX_APPROVED,
                "id": tx["id"],
                "old_type": tx["type"],
                "pending": TX_PENDING,
            },
            connection=connection,
        )
        if affected != 1:
            raise ConflictError("Transaction was already resolved.", error_code="TRANSACTION_RESOLVED")
        return {**tx, "type": new_type, "status": TX_APPROVED}

    def _pending_of_type(self, tx_id: str, tx_type: str, *, connection: Connection) -> dict[str, Any]:
        tx = self._get_transaction(tx_id, connection=connection)
        if tx is None:
            raise NotFoundError("Transaction not found.", error_code="TRANSACTION_NOT_FOUND")
        if tx["type"] != tx_type or tx["status"] != TX_PENDING:
            raise InvalidTransitionError(
                "Invalid transaction.",
                details={"type": tx["type"], "status": tx["status"], "expected_type": tx_type},
            )
        return tx

    def place_hold(
        self, *, connection: Connection, request: dict[str, Any], amount: float
    ) -> dict[str, Any]:
        """Debit the requester into the request's hold. The request row already carries the amount."""

        self._change_balance(
            connection=connection, owner_kind="users", owner_id=request["user_id"], delta=-amount
        )
        return self._insert_transaction(
            connection=connection,
            tx_type=TX_PAYMENT_HOLD,
            amount=amount,
            status=TX_APPROVED,
            user_id=request["user_id"],
            related_request_id=request["id"],
        )

    def release_hold(
        self, *, connection: Connection, request: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, Any] | None]:
        """Return an unpaid wallet hold to the requester; no-op when nothing is held."""

        hold = to_money(request.get("wallet_hold_amount"))
        if request["payment_method"] != METHOD_WALLET or request["payment_status"] == PAYMENT_PAID or hold <= 0:
            return request, None

        changes: dict[str, Any] = {"wallet_hold_amount": 0}
        if request["payment_status"] == PAYMENT_HOLD:
            changes["payment_status"] = PAYMENT_UNPAID
        updated = request_store.update_request(self.db, request, changes, connection=connection)

        self._change_balance(
            connection=connection, owner_kind="users", owner_id=request["user_id"], delta=hold
        )
        tx = self._insert_transaction(
            connection=connection,
            tx_type=TX_PAYMENT_HOLD_RELEASE,
            amount=hold,
            status=TX_APPROVED,
            user_id=request["user_id"],
            related_request_id=request["id"],
        )
        return updated, tx

    def settle_wallet_payment(
        self, *, connection: Connection, request: dict[str, Any], user_id: str
    ) -> dict[str, Any]:
        """Capture the hold, top it up or refund the excess, and pay the provider."""

        if request["user_id"] != user_id:
            raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")
        if request["payment_method"] != METHOD_WALLET:
            raise ValidationFailedError("Not a wallet payment.", error_code="NOT_WALLET_PAYMENT")
        if request["payment_status"] == PAYMENT_PAID:
            raise ConflictError("Payment already confirmed.", error_code="ALREADY_PAID")
        if request["payment_status"] not in SETTLEABLE_PAYMENT_STATUSES:
            raise InvalidTransitionError("Payment is not ready for wallet processing.")
        if request["status"] != STATUS_COMPLETED:
            raise InvalidTransitionError("Provider has not completed the request yet.")
        payable = payable_amount(request)
        if payable <= 0:
            raise InvalidTransitionError("Missing amount to pay.", error_code="MISSING_PAYABLE_AMOUNT")

        hold = to_money(request.get("wallet_hold_amount"))
        additional_debit = to_money(max(payable - hold, 0))
        user = self.directory.find_user(user_id, connection=connection)
        if user is None:
            raise NotFoundError("User not found.", error_code="USER_NOT_FOUND")
        if user["wallet_balance"] < additional_debit:
            raise InsufficientFundsError(
                "Insufficient balance.",
                details={"required": additional_debit, "available": user["wallet_balance"]},
            )
        if not request.get("provider_id"):
            raise InvalidTransitionError(
                "No provider assigned to this request.", error_code="NO_PROVIDER_ASSIGNED"
            )
        provider = self.directory.find_provider(request["provider_id"], connection=connection)
        if provider is None:
            raise NotFoundError("Provider not found for this request.", error_code="PROVIDER_NOT_FOUND")

        # Claim the request first; a concurrent settlement loses here before any money moves.
        updated = request_store.update_request(
            self.db,
            request,
            {"wallet_hold_amount": 0, "payment_status": PAYMENT_PAID},
            connection=connection,
        )

        release_amount = to_money(hold - payable) if hold > payable else 0.0
        if additional_debit > 0:
            self._change_balance(
                connection=connection, owner_kind="users", owner_id=user_id, delta=-additional_debit
            )
        if release_amount > 0:
            self._change_balance(
                connection=connection, owner_kind="users", owner_id=user_id, delta=release_amount
            )
        self._change_balance(
            connection=connection, owner_kind="providers", owner_id=provider["id"], delta=payable
        )

        transactions: list[dict[str, Any]] = []
        if additional_debit > 0:
            transactions.append(
                self._insert_transaction(
                    connection=connection,
                    tx_type=TX_PAYMENT,
                    amount=additional_debit,
                    status=TX_APPROVED,
                    user_id=user_id,
                    related_request_id=request["id"],
                )
            )
        if release_amount > 0:
            transactions.append(
                self._insert_transaction(
                    connection=connection,
                    tx_type=TX_PAYMENT_HOLD_RELEASE,
                    amount=release_amount,
                    status=TX_APPROVED,
                    user_id=user_id,
                    related_request_id=request["id"],
                )
            )
        provider_transaction = self._insert_transaction(
            connection=connection,
            tx_type=TX_PROVIDER_EARNING,
            amount=payable,
            status=TX_APPROVED,
            provider_id=provider["id"],
            related_request_id=request["id"],
        )
        return {
            "service_request": updated,
            "transactions": [*transactions, provider_transaction],
            "provider_transaction": provider_transaction,
            "paid_amount": payable,
        }

    def pay_with_wallet(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_USER)
        with self.db.transaction() as connection:
            request = request_store.get_request(self.db, request_id, connection=connection)
            if request is None:
                raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")
            return self.settle_wallet_payment(connection=connection, request=request, user_id=principal.id)

    def top_up_user(self, *, principal: Principal, user_id: str, amount: float) -> dict[str, Any]:
        require_role(principal, ROLE_ADMIN)
        value = _require_positive(amount)
        with self.db.transaction() as connection:
            self._change_balance(connection=connection, owner_kind="users", owner_id=user_id, delta=value)
            return self._insert_transaction(
                connection=connection,
                tx_type=TX_ADMIN_TOP_UP,
                amount=value,
                status=TX_APPROVED,
                user_id=user_id,
            )

    def adjust_provider(self, *, principal: Principal, provider_id: str, amount: float) -> dict[str, Any]:
        require_role(principal, ROLE_ADMIN)
        value = _require_positive(amount)
        with self.db.transaction() as connection:
            self._change_balance(
                connection=connection, owner_kind="providers", owner_id=provider_id, delta=value
            )
            return self._insert_transaction(
                connection=connection,
                tx_type=TX_ADMIN_ADJUSTMENT,
                amount=value,
                status=TX_APPROVED,
                provider_id=provider_id,
            )

    def provider_earning(
        self,
        *,
        principal: Principal,
        provider_id: str,
        request_id: str | None,
        amount: float,
    ) -> dict[str, Any]:
        require_role(principal, ROLE_ADMIN)
        value = _require_positive(amount)
        with self.db.transaction() as connection:
            self._change_balance(
                connection=connection, owner_kind="providers", owner_id=provider_id, delta=value
            )
            return self._insert_transaction(
                connection=connection,
                tx_type=TX_PROVIDER_EARNING,
                amount=value,
                status=TX_APPROVED,
                provider_id=provider_id,
                related_request_id=request_id,
            )

    def request_cash_in(
        self,
        *,
        provider_id: str,
        amount: float,
        user_id: str | None = None,
        related_request_id: str | None = None,
        connection: Connection | None = None,
    ) -> dict[str, Any]:
        """Record a provider-reported cash collection. No balance moves until an admin approves."""

        value = _require_positive(amount)
        if connection is not None:
            return self._insert_transaction(
                connection=connection,
                tx_type=TX_CASH_IN_REQUEST,
                amount=value,
                status=TX_PENDING,
                user_id=user_id,
                provider_id=provider_id,
                related_request_id=related_request_id,
            )
        with self.db.transaction() as own_connection:
            return self._insert_transaction(
                connection=own_connection,
                tx_type=TX_CASH_IN_REQUEST,
                amount=value,
                status=TX_PENDING,
                user_id=user_id,
                provider_id=provider_id,
                related_request_id=related_request_id,
            )

    def approve_cash_in(self, *, principal: Principal, tx_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_ADMIN)
        with self.db.transaction() as connection:
            tx = self._pending_of_type(tx_id, TX_CASH_IN_REQUEST, connection=connection)
            approved = self._upgrade_pending(connection=connection, tx=tx)
            if tx.get("user_id"):
                self._change_balance(
                    connection=connection, owner_kind="users", owner_id=tx["user_id"], delta=tx["amount"]
                )
        LOGGER.info("cash-in approved tx_id=%s amount=%.2f", tx_id, approved["amount"])
        return approved

    def reject_transaction(self, *, principal: Principal, tx_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_ADMIN)
        with self.db.transaction() as connection:
            tx = self._get_transaction(tx_id, connection=connection)
            if tx is None:
                raise NotFoundError("Transaction not found.", error_code="TRANSACTION_NOT_FOUND")
            if tx["status"] != TX_PENDING:
                raise InvalidTransitionError(
                    "Invalid transaction.", details={"type": tx["type"], "status": tx["status"]}
                )
            affected = self.db.execute(
                "UPDATE wallet_transactions SET status = :rejected WHERE id = :id AND status = :pending",
                {"rejected": TX_REJECTED, "id": tx_id, "pending": TX_PENDING},
                connection=connection,
            )
            if affected != 1:
                raise ConflictError("Transaction was already resolved.", error_code="TRANSACTION_RESOLVED")
        LOGGER.info("transaction rejected tx_id=%s type=%s", tx_id, tx["type"])
        return {**tx, "status": TX_REJECTED}

    def withdraw_request(self, *, principal: Principal, amount: float) -> dict[str, Any]:
        require_role(principal, ROLE_PROVIDER)
        value = _require_positive(amount)
        with self.db.transaction() as connection:
            provider = self.directory.find_provider_by_user(principal.id, connection=connection)
            if provider is None:
                raise ValidationFailedError("Provider profile missing.", error_code="PROVIDER_PROFILE_MISSING")
            if provider["wallet_balance"] < value:
                raise InsufficientFundsError(
                    "Insufficient funds.",
                    details={"requested": value, "available": provider["wallet_balance"]},
                )
            return self._insert_transaction(
                connection=connection,
                tx_type=TX_WITHDRAWAL_REQUEST,
                amount=value,
                status=TX_PENDING,
                provider_id=provider["id"],
            )

    def approve_withdraw(self, *, principal: Principal, tx_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_ADMIN)
        with self.db.transaction() as connection:
            tx = self._pending_of_type(tx_id, TX_WITHDRAWAL_REQUEST, connection=connection)
            if not tx.get("provider_id"):
                raise InvalidTransitionError("Withdrawal has no provider.", error_code="NO_PROVIDER_ASSIGNED")
            approved = self._upgrade_pending(connection=connection, tx=tx)
            # Balance is re-checked here; a failed debit rolls the upgrade back and leaves it PENDING.
            self._change_balance(
                connection=connection,
                owner_kind="providers",
                owner_id=tx["provider_id"],
                delta=-tx["amount"],
            )
        LOGGER.info("withdrawal approved tx_id=%s amount=%.2f", tx_id, approved["amount"])
        return approved

    def wallet_view(
        self,
        *,
        principal: Principal,
        window: PageWindow,
        sort: SortSpec,
    ) -> dict[str, Any]:
        if principal.role == ROLE_PROVIDER:
            provider = self.directory.find_provider_by_user(principal.id)
            if provider is None:
                return {"balance": 0.0, "rows": [], "total_count": 0, "warnings": ["Provider profile missing."]}
            owner_column, owner_id, balance = "provider_id", provider["id"], provider["wallet_balance"]
        else:
            user = self.directory.find_user(principal.id)
            if user is None:
                raise NotFoundError("User not found.", error_code="USER_NOT_FOUND")
            owner_column, owner_id, balance = "user_id", user["id"], user["wallet_balance"]

        params = {"owner_id": owner_id, "limit": window.page_size, "offset": window.offset}
        total_count = int(
            self.db.fetch_scalar(
                f"SELECT COUNT(*) FROM wallet_transactions WHERE {owner_column} = :owner_id", params
            )
        )
        rows = self.db.fetch_all(
            f"""
            SELECT {_TX_COLUMNS} FROM wallet_transactions
            WHERE {owner_column} = :owner_id
            ORDER BY {sort.order_by(TRANSACTION_SORT_FIELD_MAP)}
            LIMIT :limit OFFSET :offset
            """,
            params,
        )
        return {
            "balance": balance,
            "rows": [_shape_transaction(row) for row in rows],
            "total_count": total_count,
            "warnings": None,
        }

    def audit_balance(self, *, principal: Principal, owner_kind: str, owner_id: str) -> dict[str, Any]:
        """Compare a cached balance with the net of its APPROVED ledger rows."""

        require_role(principal, ROLE_ADMIN)
        if owner_kind not in _OWNER_KINDS:
            raise ValidationFailedError(
                f"owner_kind must be one of {sorted(_OWNER_KINDS)}.", error_code="INVALID_OWNER_KIND"
            )
        return self.compute_balance_audit(owner_kind=owner_kind, owner_id=owner_id)

    def compute_balance_audit(self, *, owner_kind: str, owner_id: str) -> dict[str, Any]:
        table, owner_column, effects = _OWNER_KINDS[owner_kind]
        owner = self.db.fetch_one(f"SELECT wallet_balance FROM {table} WHERE id = :id", {"id": owner_id})
        if owner is None:
            raise NotFoundError(f"Wallet owner not found: {owner_id}", error_code="WALLET_OWNER_NOT_FOUND")

        totals = self.db.fetch_all(
            f"""
            SELECT type, SUM(amount) AS total FROM wallet_transactions
            WHERE {owner_column} = :owner_id AND status = :approved
            GROUP BY type
            """,
            {"owner_id": owner_id, "approved": TX_APPROVED},
        )
        ledger_balance = to_money(
            sum(effects.get(str(row["type"]), 0) * to_money(row["total"]) for row in totals)
        )
        cached_balance = to_money(owner["wallet_balance"])
        return {
            "owner_kind": owner_kind,
            "owner_id": owner_id,
            "cached_balance": cached_balance,
            "ledger_balance": ledger_balance,
            "difference": to_money(cached_balance - ledger_balance),
            "consistent": math.isclose(cached_balance, ledger_balance, abs_tol=0.005),
        }
