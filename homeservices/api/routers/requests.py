# This file defines requester-facing service request endpoints under the versioned API path.
# Requesters create requests, cancel them while still open, list and settle completed work.
# Routers stay thin: the lifecycle service enforces role, ownership, and state rules.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import PrincipalDep
from homeservices.api.dependencies import get_config, get_lifecycle_service
from homeservices.api.error_handlers import ValidationFailedError
from homeservices.api.response_envelope import build_envelope
from homeservices.api.schemas.common import ERROR_RESPONSES
from homeservices.api.schemas.request_schemas import (
    CreateServiceRequestBody,
    PaymentResultResponseV1,
    RequesterStatusBody,
    ServiceRequestListResponseV1,
    ServiceRequestResponseV1,
)
from homeservices.api.services.lifecycle_service import LifecycleService
from homeservices.api.services.status_rules import STATUS_CANCELED

router = APIRouter(prefix="/requests", tags=["requests"], responses=ERROR_RESPONSES)
LifecycleServiceDep = Annotated[LifecycleService, Depends(get_lifecycle_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("", response_model=ServiceRequestResponseV1, status_code=status.HTTP_201_CREATED)
def create_request(
    request: Request,
    body: CreateServiceRequestBody,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    created = service.create(
        principal=principal,
        service_category_id=body.service_category_id,
        user_location_id=body.user_location_id,
        problem_description=body.problem_description,
        requested_date_time=body.requested_date_time,
        payment_method=body.payment_method.strip().upper(),
        photo_url=body.photo_url,
    )
    return build_envelope(request, config, created)


@router.get("/my/pending-approvals", response_model=ServiceRequestListResponseV1)
def list_pending_approvals(
    request: Request,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    pending = service.list_pending_approvals(principal=principal)
    return build_envelope(request, config, pending)


@router.get("/{request_id}", response_model=ServiceRequestResponseV1)
def get_request(
    request: Request,
    request_id: str,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.get_request(principal=principal, request_id=request_id)
    return build_envelope(request, config, result)


@router.patch("/{request_id}/status", response_model=ServiceRequestResponseV1)
def cancel_request(
    request: Request,
    request_id: str,
    body: RequesterStatusBody,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    if body.status.strip().upper() != STATUS_CANCELED:
        raise ValidationFailedError("Users can only cancel requests.", error_code="INVALID_USER_STATUS")
    updated = service.cancel_by_requester(principal=principal, request_id=request_id)
    return build_envelope(request, config, updated)


@router.patch("/{request_id}/confirm", response_model=ServiceRequestResponseV1)
def confirm_cash_payment(
    request: Request,
    request_id: str,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    updated = service.confirm_cash_payment(principal=principal, request_id=request_id)
    return build_envelope(request, config, updated)


@router.patch("/{request_id}/accept", response_model=PaymentResultResponseV1)
def accept_payment(
    request: Request,
    request_id: str,
    principal: PrincipalDep,
    service: LifecycleServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    result = service.accept_payment(principal=principal, request_id=request_id)
    return build_envelope(request, config, result)
