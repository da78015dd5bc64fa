# This file defines the rating endpoint under the versioned API path.

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from homeservices.api.api_config import ApiConfig
from homeservices.api.auth import PrincipalDep
from homeservices.api.dependencies import get_config, get_rating_service
from homeservices.api.response_envelope import build_envelope
from homeservices.api.schemas.common import ERROR_RESPONSES
from homeservices.api.schemas.rating_schemas import CreateRatingBody, RatingResponseV1
from homeservices.api.services.rating_service import RatingService

router = APIRouter(prefix="/ratings", tags=["ratings"], responses=ERROR_RESPONSES)
RatingServiceDep = Annotated[RatingService, Depends(get_rating_service)]
ConfigDep = Annotated[ApiConfig, Depends(get_config)]


@router.post("", response_model=RatingResponseV1, status_code=status.HTTP_201_CREATED)
def create_rating(
    request: Request,
    body: CreateRatingBody,
    principal: PrincipalDep,
    service: RatingServiceDep,
    config: ConfigDep,
) -> dict[str, object]:
    rating = service.create_rating(
        principal=principal,
        request_id=body.request_id,
        score=body.score,
        comment=body.comment,
    )
    return build_envelope(request, config, rating)
