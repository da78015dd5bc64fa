# This file implements requester ratings for completed service requests.
# One rating is allowed per request; each new rating refreshes the provider's aggregate score
# and completed-job count in the same transaction.

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.exc import IntegrityError

from homeservices.api.auth import ROLE_USER, Principal, require_role
from homeservices.api.db_access import DatabaseClient
from homeservices.api.error_handlers import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from homeservices.api.services import request_store
from homeservices.api.services.status_rules import STATUS_COMPLETED, timestamp_now

LOGGER = logging.getLogger("ratings")

MIN_SCORE = 1
MAX_SCORE = 5


class RatingService:
    def __init__(self, *, db: DatabaseClient) -> None:
        self.db = db

    def create_rating(
        self,
        *,
        principal: Principal,
        request_id: str,
        score: int,
        comment: str | None = None,
    ) -> dict[str, Any]:
        require_role(principal, ROLE_USER)
        if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationFailedError(
                f"score must be an integer between {MIN_SCORE} and {MAX_SCORE}.", error_code="INVALID_SCORE"
            )

        row = {
            "id": uuid.uuid4().hex,
            "user_id": principal.id,
            "score": score,
            "comment": comment.strip() if comment and comment.strip() else None,
            "created_at": timestamp_now(),
        }
        try:
            with self.db.transaction() as connection:
                request = request_store.get_request(self.db, request_id, connection=connection)
                if request is None or request["user_id"] != principal.id:
                    raise NotFoundError("Request not found.", error_code="REQUEST_NOT_FOUND")
                if request["status"] != STATUS_COMPLETED:
                    raise InvalidTransitionError("Only completed requests can be rated.")
                if not request.get("provider_id"):
                    raise InvalidTransitionError(
                        "No provider assigned to this request.", error_code="NO_PROVIDER_ASSIGNED"
                    )
                existing = self.db.fetch_one(
                    "SELECT id FROM ratings WHERE service_request_id = :request_id",
                    {"request_id": request_id},
                    connection=connection,
                )
                if existing is not None:
                    raise ConflictError("Request already rated.", error_code="ALREADY_RATED")

                row["provider_id"] = request["provider_id"]
                row["service_request_id"] = request_id
                self.db.execute(
                    """
                    INSERT INTO ratings (id, user_id, provider_id, service_request_id, score, comment, created_at)
                    VALUES (:id, :user_id, :provider_id, :service_request_id, :score, :comment, :created_at)
                    """,
                    row,
                    connection=connection,
                )
                aggregate = self.refresh_provider_aggregate(request["provider_id"], connection=connection)
        except IntegrityError as exc:
            # Unique service_request_id catches a rating committed between our check and insert.
            raise ConflictError("Request already rated.", error_code="ALREADY_RATED") from exc

        LOGGER.info(
            "rating recorded request_id=%s provider_id=%s score=%s", request_id, row["provider_id"], score
        )
        return {**row, "provider_average_rating": aggregate["average_rating"]}

    def refresh_provider_aggregate(self, provider_id: str, *, connection: Any) -> dict[str, Any]:
        stats = self.db.fetch_one(
            "SELECT COUNT(*) AS total, AVG(score) AS average FROM ratings WHERE provider_id = :provider_id",
            {"provider_id": provider_id},
            connection=connection,
        )
        total = int(stats["total"]) if stats else 0
        average = round(float(stats["average"]), 2) if stats and stats["average"] is not None else 0.0
        self.db.execute(
            """
            UPDATE service_providers
            SET average_rating = :average, total_completed_jobs = :total
            WHERE id = :id
            """,
            {"average": average, "total": total, "id": provider_id},
            connection=connection,
        )
        return {"average_rating": average, "total_completed_jobs": total}
