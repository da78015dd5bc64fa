# This file defines admin wallet endpoints under the versioned API path.
# Admins credit wallets directly, resolve pending cash-in and withdrawal requests, and audit a
# cached balance against the ledger rows that should explain it.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import PrincipalDep
from homeservices.api.dependencies import get_config, get_ledger_service
from homeservices.api.response_envelope import build_envelope
from homeservices.api.schemas.common import ERROR_RESPONSES
from homeservices.api.schemas.wallet_schemas import (
    BalanceAuditResponseV1,
    ProviderEarningBody,
    ProviderTopUpBody,
    UserTopUpBody,
    WalletTransactionResponseV1,
)
from homeservices.api.services.ledger_service import LedgerService

router = APIRouter(prefix="/admin/wallet", tags=["admin"], responses=ERROR_RESPONSES)
LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post(
    "/topup-user",
    response_model=WalletTransactionResponseV1,
    status_code=status.HTTP_201_CREATED,
)
def top_up_user(
    request: Request,
    body: UserTopUpBody,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    tx = service.top_up_user(principal=principal, user_id=body.user_id, amount=body.amount)
    return build_envelope(request, config, tx)


@router.post(
    "/topup-provider",
    response_model=WalletTransactionResponseV1,
    status_code=status.HTTP_201_CREATED,
)
def top_up_provider(
    request: Request,
    body: ProviderTopUpBody,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    tx = service.adjust_provider(principal=principal, provider_id=body.provider_id, amount=body.amount)
    return build_envelope(request, config, tx)


@router.post("/cash-in/{tx_id}/approve", response_model=WalletTransactionResponseV1)
def approve_cash_in(
    request: Request,
    tx_id: str,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.approve_cash_in(principal=principal, tx_id=tx_id)
    return build_envelope(request, config, result)


@router.post("/cash-in/{tx_id}/reject", response_model=WalletTransactionResponseV1)
def reject_cash_in(
    request: Request,
    tx_id: str,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.reject_transaction(principal=principal, tx_id=tx_id)
    return build_envelope(request, config, result)


@router.post("/withdraw/{tx_id}/approve", response_model=WalletTransactionResponseV1)
def approve_withdraw(
    request: Request,
    tx_id: str,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.approve_withdraw(principal=principal, tx_id=tx_id)
    return build_envelope(request, config, result)


@router.post("/withdraw/{tx_id}/reject", response_model=WalletTransactionResponseV1)
def reject_withdraw(
    request: Request,
    tx_id: str,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.reject_transaction(principal=principal, tx_id=tx_id)
    return build_envelope(request, config, result)


@router.post(
    "/provider-earning",
    response_model=WalletTransactionResponseV1,
    status_code=status.HTTP_201_CREATED,
)
def provider_earning(
    request: Request,
    body: ProviderEarningBody,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    tx = service.provider_earning(
        principal=principal,
        provider_id=body.provider_id,
        request_id=body.request_id,
        amount=body.amount,
    )
    return build_envelope(request, config, tx)


@router.get("/audit/{owner_kind}/{owner_id}", response_model=BalanceAuditResponseV1)
def audit_balance(
    request: Request,
    owner_kind: str,
    owner_id: str,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    audit = service.audit_balance(principal=principal, owner_kind=owner_kind, owner_id=owner_id)
    return build_envelope(request, config, audit)
