# This file defines wallet schemas for ledger rows, admin request bodies, and envelopes.
# Amount bodies validate positivity up front; the ledger service checks again before writing.

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from homeservices.api.schemas.common import EnvelopeFields, PaginationMetadata, PositiveAmount


class WalletTransactionV1(BaseModel):
    id: str
    user_id: str | None = None
    provider_id: str | None = None
    type: str
    amount: float
    status: str
    related_service_request_id: str | None = None
    created_at: datetime


class UserTopUpBody(BaseModel):
    user_id: str = Field(min_length=1)
    amount: PositiveAmount


class ProviderTopUpBody(BaseModel):
    provider_id: str = Field(min_length=1)
    amount: PositiveAmount


class ProviderEarningBody(BaseModel):
    provider_id: str = Field(min_length=1)
    request_id: str | None = None
    amount: PositiveAmount


class WithdrawBody(BaseModel):
    amount: PositiveAmount


class WalletViewV1(BaseModel):
    balance: float
    transactions: list[WalletTransactionV1]


class WalletViewResponseV1(EnvelopeFields):
    data: WalletViewV1
    pagination: PaginationMetadata


class WalletTransactionResponseV1(EnvelopeFields):
    data: WalletTransactionV1


class BalanceAuditV1(BaseModel):
    owner_kind: str
    owner_id: str
    cached_balance: float
    ledger_balance: float
    difference: float
    consistent: bool


class BalanceAuditResponseV1(EnvelopeFields):
    data: BalanceAuditV1
