# This file defines schema pieces shared by every marketplace endpoint.
# The envelope base, pagination block, and error payload are declared once so routers can
# document their failure modes with the same models the handlers emit.

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field


def _whole_cents(value: float) -> float:
    if round(value, 2) <= 0:
        raise ValueError("amount must be at least 0.01")
    return value


# Money inputs: finite and at least one cent once rounded. The ledger re-checks before writing.
PositiveAmount = Annotated[float, Field(gt=0, allow_inf_nan=False), AfterValidator(_whole_cents)]


class VersionedFields(BaseModel):
    api_version: str
    schema_version: str
    request_id: str


class EnvelopeFields(VersionedFields):
    generated_at: datetime
    warnings: list[str] | None = None


class PaginationMetadata(BaseModel):
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    total_count: int = Field(ge=0)
    total_pages: int = Field(ge=0)
    sort: str


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str
    timestamp: datetime


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Validation, transition, or funds error."},
    401: {"model": ErrorResponse, "description": "Missing or unknown principal."},
    403: {"model": ErrorResponse, "description": "Role not allowed for this operation."},
    404: {"model": ErrorResponse, "description": "Entity absent or not visible to the caller."},
    409: {"model": ErrorResponse, "description": "Concurrent modification or already settled."},
}
