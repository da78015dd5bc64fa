# This file defines service request schemas for request bodies, rows, and envelopes.
# Enum-like inputs (payment method, target status) are plain strings here so the service layer
# can reject bad values with its own 400 error codes instead of a generic 422.

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from homeservices.api.schemas.common import EnvelopeFields, PositiveAmount
from homeservices.api.schemas.wallet_schemas import WalletTransactionV1


class CreateServiceRequestBody(BaseModel):
    service_category_id: str = Field(min_length=1)
    user_location_id: str = Field(min_length=1)
    problem_description: str = Field(min_length=1, max_length=2000)
    requested_date_time: datetime
    payment_method: str
    photo_url: str | None = None


class RequesterStatusBody(BaseModel):
    status: str


class ProviderStatusBody(BaseModel):
    status: str
    amount: float | None = None


class CompleteRequestBody(BaseModel):
    amount: float | None = None


class CashInBody(BaseModel):
    amount: PositiveAmount


class ServiceRequestV1(BaseModel):
    id: str
    user_id: str
    provider_id: str | None = None
    service_category_id: str
    user_location_id: str
    problem_description: str
    requested_date_time: datetime
    photo_url: str | None = None
    status: str
    price: float
    final_amount: float | None = None
    payment_method: str
    payment_status: str
    wallet_hold_amount: float
    version: int
    created_at: datetime
    updated_at: datetime


class ServiceRequestResponseV1(EnvelopeFields):
    data: ServiceRequestV1


class PaymentResultV1(BaseModel):
    service_request: ServiceRequestV1
    transactions: list[WalletTransactionV1]
    provider_transaction: WalletTransactionV1 | None = None
    paid_amount: float


class PaymentResultResponseV1(EnvelopeFields):
    data: PaymentResultV1


class ServiceRequestListResponseV1(EnvelopeFields):
    data: list[ServiceRequestV1]


class ProviderQueueItemV1(ServiceRequestV1):
    distance_km: float | None = None
    is_assigned_to_me: bool


class ProviderQueueResponseV1(EnvelopeFields):
    data: list[ProviderQueueItemV1]
