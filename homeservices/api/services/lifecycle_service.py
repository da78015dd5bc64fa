# This file implements the service request lifecycle: creation, provider claims, progress,
# cancellation, and settlement.
# Each operation checks the caller's role and ownership itself, then runs its reads and writes
# inside one database transaction. Wallet side effects are delegated to the ledger service on the
# same connection, so a failed ledger write also undoes the status change that triggered it.

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import ROLE_ADMIN, ROLE_MANAGER, ROLE_PROVIDER, ROLE_USER, Principal, require_role
from homeservices.api.db_access import DatabaseClient
from homeservices.api.error_handlers import (
    ConflictError,
    ForbiddenError,
    InsufficientFundsError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from homeservices.api.services import request_store
from homeservices.api.services.directory_service import DirectoryService
from homeservices.api.services.ledger_service import LedgerService
from homeservices.api.services.status_rules import (
    METHOD_CASH,
    METHOD_WALLET,
    PAYMENT_HOLD,
    PAYMENT_METHODS,
    PAYMENT_PAID,
    PAYMENT_PENDING_CONFIRMATION,
    PAYMENT_UNPAID,
    PROVIDER_ADVANCE_TARGETS,
    RELEASABLE_STATUSES,
    SETTLEABLE_PAYMENT_STATUSES,
    STATUS_ACCEPTED,
    STATUS_CANCELED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_TRANSITIONS,
    payable_amount,
    timestamp_now,
)

LOGGER = logging.getLogger("lifecycle")

_AMOUNT_REQUIRED_MESSAGE = "Amount is required when completing a request and must be at least 0.01."


def _completion_amount(amount: Any) -> float:
    if amount is None or isinstance(amount, bool):
        raise ValidationFailedError(_AMOUNT_REQUIRED_MESSAGE, error_code="AMOUNT_REQUIRED")
    try:
        value = float(amount)
    except (TypeError, ValueError) as exc:
        raise ValidationFailedError(_AMOUNT_REQUIRED_MESSAGE, error_code="AMOUNT_REQUIRED") from exc
    rounded = round(value, 2) if math.isfinite(value) else 0.0
    if rounded <= 0:
        raise ValidationFailedError(_AMOUNT_REQUIRED_MESSAGE, error_code="AMOUNT_REQUIRED")
    return rounded


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    r = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return r * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class LifecycleService:
    """State machine for service requests and their payment status."""

    def __init__(
        self,
        *,
        config: ApiConfig,
        db: DatabaseClient,
        directory: DirectoryService,
        ledger: LedgerService,
    ) -> None:
        self.config = config
        self.db = db
        self.directory = directory
        self.ledger = ledger

    def _provider_for(self, principal: Principal, *, connection: Any) -> dict[str, Any]:
        provider = self.directory.find_provider_by_user(principal.id, connection=connection)
        if provider is None:
            raise ValidationFailedError("Provider profile missing.", error_code="PROVIDER_PROFILE_MISSING")
        if not provider.get("service_category_id"):
            raise ValidationFailedError(
                "Service category missing on profile.", error_code="PROVIDER_CATEGORY_MISSING"
            )
        return provider

    def _owned_request(self, principal: Principal, request_id: str, *, connection: Any) -> dict[str, Any]:
        request = request_store.get_request(self.db, request_id, connection=connection)
        if request is None or request["user_id"] != principal.id:
            raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")
        return request

    def get_request(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        """Read one request as its requester, its assigned provider, or an admin."""

        request = request_store.get_request(self.db, request_id)
        if request is None:
            raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")
        if principal.role in {ROLE_ADMIN, ROLE_MANAGER}:
            return request
        if principal.role == ROLE_USER and request["user_id"] == principal.id:
            return request
        if principal.role == ROLE_PROVIDER:
            provider = self.directory.find_provider_by_user(principal.id)
            if provider is not None and request.get("provider_id") == provider["id"]:
                return request
        raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")

    def list_for_provider(self, *, principal: Principal) -> list[dict[str, Any]]:
        """Provider work queue: own active jobs first, then open requests in the category by distance.

        Without a fixed location only the provider's active jobs are listed, and a provider with
        neither a location nor active jobs is told to set one.
        """

        require_role(principal, ROLE_PROVIDER)
        provider = self._provider_for(principal, connection=None)
        latitude = provider.get("fixed_latitude")
        longitude = provider.get("fixed_longitude")
        has_coordinates = latitude is not None and longitude is not None

        active = request_store.list_requests_with_location(
            self.db,
            "r.provider_id = :provider_id AND r.status IN (:accepted, :in_progress)",
            {"provider_id": provider["id"], "accepted": STATUS_ACCEPTED, "in_progress": STATUS_IN_PROGRESS},
        )
        if not has_coordinates and not active:
            raise ValidationFailedError("Set fixed location first.", error_code="PROVIDER_LOCATION_MISSING")

        combined = list(active)
        if has_coordinates:
            combined += request_store.list_requests_with_location(
                self.db,
                "r.status = :pending AND r.service_category_id = :category_id",
                {"pending": STATUS_PENDING, "category_id": provider["service_category_id"]},
            )

        listed: dict[str, dict[str, Any]] = {}
        for row in combined:
            if row["id"] in listed:
                continue
            distance = None
            if has_coordinates and row.get("location_latitude") is not None:
                distance = haversine_km(
                    float(latitude),
                    float(longitude),
                    float(row["location_latitude"]),
                    float(row["location_longitude"]),
                )
            row["distance_km"] = distance
            row["is_assigned_to_me"] = row.get("provider_id") == provider["id"]
            listed[row["id"]] = row

        return sorted(
            listed.values(),
            key=lambda item: (
                not item["is_assigned_to_me"],
                item["distance_km"] is None,
                item["distance_km"] or 0.0,
            ),
        )

    def list_pending_approvals(self, *, principal: Principal) -> list[dict[str, Any]]:
        """Completed requests still waiting on the requester to settle, newest activity first."""

        require_role(principal, ROLE_USER)
        return request_store.list_requests_with_location(
            self.db,
            "r.user_id = :user_id AND r.status = :completed AND r.payment_status IN (:hold, :pending)",
            {
                "user_id": principal.id,
                "completed": STATUS_COMPLETED,
                "hold": PAYMENT_HOLD,
                "pending": PAYMENT_PENDING_CONFIRMATION,
            },
            order_by="r.updated_at DESC, r.id",
        )

    def create(
        self,
        *,
        principal: Principal,
        service_category_id: str,
        user_location_id: str,
        problem_description: str,
        requested_date_time: datetime,
        payment_method: str,
        photo_url: str | None = None,
    ) -> dict[str, Any]:
        require_role(principal, ROLE_USER)
        if not payment_method:
            raise ValidationFailedError("paymentMethod is required.", error_code="PAYMENT_METHOD_REQUIRED")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationFailedError("Invalid payment method.", error_code="INVALID_PAYMENT_METHOD")
        if not problem_description or not problem_description.strip():
            raise ValidationFailedError("Problem description is required.", error_code="DESCRIPTION_REQUIRED")

        with self.db.transaction() as connection:
            category = self.directory.find_active_category(service_category_id, connection=connection)
            if category is None:
                raise ValidationFailedError("Invalid service category.", error_code="INVALID_CATEGORY")
            location = self.directory.find_location(
                user_location_id, user_id=principal.id, connection=connection
            )
            if location is None:
                raise NotFoundError("Location not found.", error_code="LOCATION_NOT_FOUND")

            hold_amount = category["base_price"] if payment_method == METHOD_WALLET else 0.0
            if payment_method == METHOD_WALLET:
                user = self.directory.find_user(principal.id, connection=connection)
                if user is None:
                    raise NotFoundError("User not found.", error_code="USER_NOT_FOUND")
                if user["wallet_balance"] < hold_amount:
                    raise InsufficientFundsError(
                        "Insufficient wallet balance.",
                        details={"required": hold_amount, "available": user["wallet_balance"]},
                    )

            request = request_store.insert_request(
                self.db,
                {
                    "user_id": principal.id,
                    "service_category_id": category["id"],
                    "user_location_id": location["id"],
                    "problem_description": problem_description.strip(),
                    "requested_date_time": requested_date_time.isoformat(),
                    "photo_url": photo_url,
                    "status": STATUS_PENDING,
                    "price": category["base_price"],
                    "payment_method": payment_method,
                    "payment_status": PAYMENT_HOLD if payment_method == METHOD_WALLET else PAYMENT_UNPAID,
                    "wallet_hold_amount": hold_amount,
                },
                connection=connection,
            )
            if hold_amount > 0:
                try:
                    self.ledger.place_hold(connection=connection, request=request, amount=hold_amount)
                except Exception:
                    # Leaving the block with the error rolls back the request insert with the debit.
                    LOGGER.warning("wallet hold failed; discarding request_id=%s", request["id"])
                    raise

        LOGGER.info(
            "request created request_id=%s method=%s hold=%.2f", request["id"], payment_method, hold_amount
        )
        return request

    def accept_by_provider(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_PROVIDER)
        with self.db.transaction() as connection:
            provider = self._provider_for(principal, connection=connection)
            # Single conditional update: only one concurrent claimant can match PENDING.
            affected = self.db.execute(
                """
                UPDATE service_requests
                SET provider_id = :provider_id, status = :accepted,
                    version = version + 1, updated_at = :updated_at
                WHERE id = :id AND status = :pending AND service_category_id = :category_id
                """,
                {
                    "provider_id": provider["id"],
                    "accepted": STATUS_ACCEPTED,
                    "updated_at": timestamp_now(),
                    "id": request_id,
                    "pending": STATUS_PENDING,
                    "category_id": provider["service_category_id"],
                },
                connection=connection,
            )
            if affected != 1:
                raise NotFoundError("Not found or already claimed.", error_code="REQUEST_NOT_CLAIMABLE")
            request = request_store.get_request(self.db, request_id, connection=connection)
        LOGGER.info("request accepted request_id=%s provider_id=%s", request_id, provider["id"])
        return request

    def reject_by_provider(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_PROVIDER)
        with self.db.transaction() as connection:
            provider = self._provider_for(principal, connection=connection)
            request = request_store.get_request(self.db, request_id, connection=connection)
            if request is None:
                raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")
            if request["service_category_id"] != provider["service_category_id"]:
                raise ForbiddenError("Request not in your service category.", error_code="CATEGORY_MISMATCH")
            if request["status"] not in RELEASABLE_STATUSES:
                raise InvalidTransitionError(f"Cannot reject a request in {request['status']} status.")
            if request.get("provider_id") and request["provider_id"] != provider["id"]:
                raise ForbiddenError(
                    "Request is assigned to another provider.", error_code="ASSIGNED_TO_OTHER_PROVIDER"
                )

            request = request_store.update_request(
                self.db,
                request,
                {"provider_id": provider["id"], "status": STATUS_REJECTED},
                connection=connection,
            )
            request, _ = self.ledger.release_hold(connection=connection, request=request)
        LOGGER.info("request rejected request_id=%s provider_id=%s", request_id, provider["id"])
        return request

    def cancel_by_requester(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_USER)
        with self.db.transaction() as connection:
            request = self._owned_request(principal, request_id, connection=connection)
            if request["status"] not in RELEASABLE_STATUSES:
                raise InvalidTransitionError(f"Cannot cancel a request in {request['status']} status.")
            request = request_store.update_request(
                self.db, request, {"status": STATUS_CANCELED}, connection=connection
            )
            request, _ = self.ledger.release_hold(connection=connection, request=request)
        LOGGER.info("request canceled request_id=%s", request_id)
        return request

    def advance_by_provider(
        self,
        *,
        principal: Principal,
        request_id: str,
        new_status: str,
        amount: Any = None,
    ) -> dict[str, Any]:
        require_role(principal, ROLE_PROVIDER)
        if new_status not in PROVIDER_ADVANCE_TARGETS:
            raise ValidationFailedError("Invalid status for provider.", error_code="INVALID_PROVIDER_STATUS")
        completion_amount = _completion_amount(amount) if new_status == STATUS_COMPLETED else None

        with self.db.transaction() as connection:
            provider = self.directory.find_provider_by_user(principal.id, connection=connection)
            if provider is None:
                raise ValidationFailedError("Provider profile missing.", error_code="PROVIDER_PROFILE_MISSING")
            request = request_store.get_request(self.db, request_id, connection=connection)
            if request is None or request.get("provider_id") != provider["id"]:
                raise NotFoundError(
                    "Request not found or not assigned to you.", error_code="REQUEST_NOT_FOUND"
                )
            current = request["status"]
            if new_status not in STATUS_TRANSITIONS.get(current, frozenset()):
                raise InvalidTransitionError(f"Cannot move from {current} to {new_status}.")

            changes: dict[str, Any] = {"status": new_status}
            if new_status == STATUS_COMPLETED:
                changes["price"] = completion_amount
                changes["final_amount"] = completion_amount
                if request["payment_status"] != PAYMENT_PAID:
                    changes["payment_status"] = PAYMENT_PENDING_CONFIRMATION
            request = request_store.update_request(self.db, request, changes, connection=connection)
        LOGGER.info("request advanced request_id=%s %s->%s", request_id, current, new_status)
        return request

    def confirm_cash_payment(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        require_role(principal, ROLE_USER)
        with self.db.transaction() as connection:
            request = self._owned_request(principal, request_id, connection=connection)
            if request["status"] != STATUS_COMPLETED:
                raise InvalidTransitionError("Provider has not completed this request yet.")
            if request["payment_method"] != METHOD_CASH:
                raise InvalidTransitionError(
                    "Use wallet payment endpoint for wallet payments.", error_code="NOT_CASH_PAYMENT"
                )
            if request["payment_status"] == PAYMENT_PAID:
                raise ConflictError("Payment already confirmed.", error_code="ALREADY_PAID")
            if request["payment_status"] != PAYMENT_PENDING_CONFIRMATION:
                raise InvalidTransitionError("Payment is not ready for confirmation.")
            if payable_amount(request) <= 0:
                raise InvalidTransitionError(
                    "Missing payable amount, please contact support.", error_code="MISSING_PAYABLE_AMOUNT"
                )
            request = request_store.update_request(
                self.db, request, {"payment_status": PAYMENT_PAID}, connection=connection
            )
        LOGGER.info("cash payment confirmed request_id=%s", request_id)
        return request

    def accept_payment(self, *, principal: Principal, request_id: str) -> dict[str, Any]:
        """Settle a completed request: cash is marked paid, wallet goes through the ledger."""

        require_role(principal, ROLE_USER)
        with self.db.transaction() as connection:
            request = self._owned_request(principal, request_id, connection=connection)
            if request["status"] != STATUS_COMPLETED:
                raise InvalidTransitionError("Provider has not completed this request yet.")
            if request["payment_status"] == PAYMENT_PAID:
                raise ConflictError("Payment already confirmed.", error_code="ALREADY_PAID")
            if request["payment_status"] not in SETTLEABLE_PAYMENT_STATUSES:
                raise InvalidTransitionError("Payment is not ready for user confirmation.")
            payable = payable_amount(request)
            if payable <= 0:
                raise InvalidTransitionError(
                    "Missing payable amount, please contact support.", error_code="MISSING_PAYABLE_AMOUNT"
                )

            if request["payment_method"] == METHOD_CASH:
                request = request_store.update_request(
                    self.db, request, {"payment_status": PAYMENT_PAID}, connection=connection
                )
                result: dict[str, Any] = {
                    "service_request": request,
                    "transactions": [],
                    "provider_transaction": None,
                    "paid_amount": payable,
                }
            else:
                result = self.ledger.settle_wallet_payment(
                    connection=connection, request=request, user_id=principal.id
                )
        LOGGER.info(
            "payment accepted request_id=%s method=%s amount=%.2f",
            request_id,
            request["payment_method"],
            result["paid_amount"],
        )
        return result

    def request_cash_in(self, *, principal: Principal, request_id: str, amount: Any) -> dict[str, Any]:
        require_role(principal, ROLE_PROVIDER)
        with self.db.transaction() as connection:
            provider = self.directory.find_provider_by_user(principal.id, connection=connection)
            if provider is None:
                raise ValidationFailedError("Provider profile missing.", error_code="PROVIDER_PROFILE_MISSING")
            request = request_store.get_request(self.db, request_id, connection=connection)
            if request is None or request.get("provider_id") != provider["id"]:
                raise NotFoundError(
                    "Request not found or not assigned to you.", error_code="REQUEST_NOT_FOUND"
                )
            return self.ledger.request_cash_in(
                provider_id=provider["id"],
                amount=amount,
                user_id=request["user_id"],
                related_request_id=request["id"],
                connection=connection,
            )
