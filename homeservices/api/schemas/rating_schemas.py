# This file defines rating request and response schemas.

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from homeservices.api.schemas.common import EnvelopeFields


class CreateRatingBody(BaseModel):
    request_id: str = Field(min_length=1)
    score: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class RatingV1(BaseModel):
    id: str
    user_id: str
    provider_id: str
    service_request_id: str
    score: int
    comment: str | None = None
    created_at: datetime
    provider_average_rating: float


class RatingResponseV1(EnvelopeFields):
    data: RatingV1
