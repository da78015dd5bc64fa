# This file defines wallet endpoints for requesters and providers under the versioned API path.
# The wallet view pages through the caller's own ledger rows newest first.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import PrincipalDep
from homeservices.api.dependencies import get_config, get_ledger_service
from homeservices.api.error_handlers import APIError
from homeservices.api.pagination import parse_page_window, parse_sort
from homeservices.api.response_envelope import build_envelope
from homeservices.api.schemas.common import ERROR_RESPONSES
from homeservices.api.schemas.request_schemas import PaymentResultResponseV1
from homeservices.api.schemas.wallet_schemas import (
    WalletTransactionResponseV1,
    WalletViewResponseV1,
    WithdrawBody,
)
from homeservices.api.services.ledger_service import TRANSACTION_SORT_FIELD_MAP, LedgerService

router = APIRouter(tags=["wallet"], responses=ERROR_RESPONSES)
LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.get("/wallet", response_model=WalletViewResponseV1, response_model_exclude_none=True)
def wallet_view(
    request: Request,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1),
    sort: str | None = Query(default=None),
) -> dict[str, object]:
    try:
        window = parse_page_window(
            page=page,
            page_size=page_size,
            default_page_size=config.default_page_size,
            max_page_size=config.max_page_size,
        )
        sort_spec = parse_sort(
            requested_sort=sort,
            default_sort=config.default_sort_order,
            allowed_fields=TRANSACTION_SORT_FIELD_MAP,
        )
    except ValueError as exc:
        raise APIError(status_code=400, error_code="INVALID_QUERY_PARAM", message=str(exc)) from exc

    view = service.wallet_view(principal=principal, window=window, sort=sort_spec)
    return build_envelope(
        request,
        config,
        {"balance": view["balance"], "transactions": view["rows"]},
        pagination=window.metadata(total_count=int(view["total_count"]), sort=sort_spec),
        warnings=view["warnings"],
    )


@router.post("/wallet/pay/{request_id}", response_model=PaymentResultResponseV1)
def pay_with_wallet(
    request: Request,
    request_id: str,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.pay_with_wallet(principal=principal, request_id=request_id)
    return build_envelope(request, config, result)


@router.post(
    "/provider/wallet/withdraw-request",
    response_model=WalletTransactionResponseV1,
    status_code=status.HTTP_201_CREATED,
)
def withdraw_request(
    request: Request,
    body: WithdrawBody,
    principal: PrincipalDep,
    service: LedgerServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    tx = service.withdraw_request(principal=principal, amount=body.amount)
    return build_envelope(request, config, tx)
