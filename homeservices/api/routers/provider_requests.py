# This file defines provider-facing request endpoints under the versioned API path.
# Providers list their work queue, claim or decline open requests in their category, report
# progress and the final amount, and record cash they collected so an admin can credit it.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import PrincipalDep
from homeservices.api.dependencies import get_config, get_lifecycle_service
from homeservices.api.response_envelope import build_envelope
from homeservices.api.schemas.common import ERROR_RESPONSES
from homeservices.api.schemas.request_schemas import (
    CashInBody,
    CompleteRequestBody,
    ProviderQueueResponseV1,
    ProviderStatusBody,
    ServiceRequestResponseV1,
)
from homeservices.api.schemas.wallet_schemas import WalletTransactionResponseV1
from homeservices.api.services.lifecycle_service import LifecycleService
from homeservices.api.services.status_rules import STATUS_COMPLETED

router = APIRouter(prefix="/provider/requests", tags=["provider"], responses=ERROR_RESPONSES)
LifecycleServiceDep = Annotated[LifecycleService, Depends(get_lifecycle_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.get("", response_model=ProviderQueueResponseV1)
def list_provider_requests(
    request: Request,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    queue = service.list_for_provider(principal=principal)
    return build_envelope(request, config, queue)


@router.patch("/{request_id}/accept", response_model=ServiceRequestResponseV1)
def accept_request(
    request: Request,
    request_id: str,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.accept_by_provider(principal=principal, request_id=request_id)
    return build_envelope(request, config, result)


@router.patch("/{request_id}/reject", response_model=ServiceRequestResponseV1)
def reject_request(
    request: Request,
    request_id: str,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.reject_by_provider(principal=principal, request_id=request_id)
    return build_envelope(request, config, result)


@router.patch("/{request_id}/status", response_model=ServiceRequestResponseV1)
def advance_request(
    request: Request,
    request_id: str,
    body: ProviderStatusBody,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    updated = service.advance_by_provider(
        principal=principal,
        request_id=request_id,
        new_status=body.status.strip().upper(),
        amount=body.amount,
    )
    return build_envelope(request, config, updated)


@router.patch("/{request_id}/complete", response_model=ServiceRequestResponseV1)
def complete_request(
    request: Request,
    request_id: str,
    body: CompleteRequestBody,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    updated = service.advance_by_provider(
        principal=principal,
        request_id=request_id,
        new_status=STATUS_COMPLETED,
        amount=body.amount,
    )
    return build_envelope(request, config, updated)


@router.post(
    "/{request_id}/cash-in",
    response_model=WalletTransactionResponseV1,
    status_code=status.HTTP_201_CREATED,
)
def request_cash_in(
    request: Request,
    request_id: str,
    body: CashInBody,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    tx = service.request_cash_in(principal=principal, request_id=request_id, amount=body.amount)
    return build_envelope(request, config, tx)
