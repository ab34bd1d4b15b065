"""
Cosmos DB Response repository.

Responses are partitioned by survey. The container's unique key on
/respondent_lock lets the store itself reject a second live response from
the same respondent, even when two submissions race past the pre-check.
"""

import logging
from typing import Any, Optional

from azure.cosmos.exceptions import CosmosResourceExistsError

from core.exceptions import ConflictError
from db.cosmos_session import (
    RESPONSES_CONTAINER,
    create_item,
    query_count,
    query_items,
    read_item,
    replace_item,
)
from models.response import ResponseDocument

logger = logging.getLogger(__name__)

RESPONSE_SORTS = {
    "created_at": "c.created_at ASC",
    "-created_at": "c.created_at DESC",
    "completion_time": "c.completion_time ASC",
    "-completion_time": "c.completion_time DESC",
}


class CosmosResponseRepository:
    """Repository for survey response operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, survey_id: str, response_id: str) -> Optional[ResponseDocument]:
        """Point read within the survey's partition."""
        data = await read_item(RESPONSES_CONTAINER, response_id, partition_key=survey_id)
        if data is None:
            return None
        return ResponseDocument.model_validate(data)

    async def get_live_by_respondent(self, survey_id: str, respondent_ip_hash: str) -> Optional[ResponseDocument]:
        """The respondent's non-deleted response to a survey, if any."""
        query = """
            SELECT * FROM c
            WHERE c.survey_id = @survey_id
              AND c.respondent_ip_hash = @ip_hash
              AND c.is_deleted = false
        """
        results = await query_items(
            RESPONSES_CONTAINER,
            query,
            parameters=[
                {"name": "@survey_id", "value": survey_id},
                {"name": "@ip_hash", "value": respondent_ip_hash},
            ],
            partition_key=survey_id,
            max_items=1,
        )
        if not results:
            return None
        return ResponseDocument.model_validate(results[0])

    async def get_by_code(self, response_code: str) -> Optional[ResponseDocument]:
        """Look up a live response by its receipt code (cross-partition)."""
        query = """
            SELECT * FROM c
            WHERE c.response_code = @code
              AND c.is_deleted = false
        """
        results = await query_items(
            RESPONSES_CONTAINER,
            query,
            parameters=[{"name": "@code", "value": response_code.upper()}],
            max_items=1,
        )
        if not results:
            return None
        return ResponseDocument.model_validate(results[0])

    async def list_for_survey(
        self,
        survey_id: str,
        include_deleted: bool = False,
        complete_only: bool = False,
    ) -> list[ResponseDocument]:
        """All responses of a survey, oldest first."""
        conditions = ["c.survey_id = @survey_id"]
        if not include_deleted:
            conditions.append("c.is_deleted = false")
        if complete_only:
            conditions.append("c.is_complete = true")

        query = f"SELECT * FROM c WHERE {' AND '.join(conditions)} ORDER BY c.created_at ASC"
        results = await query_items(
            RESPONSES_CONTAINER,
            query,
            parameters=[{"name": "@survey_id", "value": survey_id}],
            partition_key=survey_id,
        )
        return [ResponseDocument.model_validate(r) for r in results]

    async def list_page(
        self,
        survey_id: str,
        page: int = 1,
        per_page: int = 20,
        sort: str = "-created_at",
        quality_score_min: int = 0,
    ) -> tuple[list[ResponseDocument], int]:
        """Live responses for the admin list, with pagination."""
        offset = (page - 1) * per_page
        where_clause = "c.survey_id = @survey_id AND c.is_deleted = false AND c.quality_score >= @quality_min"
        parameters: list[dict[str, Any]] = [
            {"name": "@survey_id", "value": survey_id},
            {"name": "@quality_min", "value": quality_score_min},
        ]

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await query_count(RESPONSES_CONTAINER, count_query, parameters=parameters, partition_key=survey_id)

        order_by = RESPONSE_SORTS.get(sort, RESPONSE_SORTS["-created_at"])
        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY {order_by}
            OFFSET @offset LIMIT @limit
        """
        results = await query_items(
            RESPONSES_CONTAINER,
            query,
            parameters=parameters
            + [
                {"name": "@offset", "value": offset},
                {"name": "@limit", "value": per_page},
            ],
            partition_key=survey_id,
        )
        return [ResponseDocument.model_validate(r) for r in results], total

    async def completion_summary(self, survey_id: str) -> tuple[int, int, Optional[float]]:
        """
        (live responses, complete live responses, mean completion time of the complete ones).
        """
        params = [{"name": "@survey_id", "value": survey_id}]
        live = await query_count(
            RESPONSES_CONTAINER,
            "SELECT VALUE COUNT(1) FROM c WHERE c.survey_id = @survey_id AND c.is_deleted = false",
            parameters=params,
            partition_key=survey_id,
        )
        complete = await query_count(
            RESPONSES_CONTAINER,
            "SELECT VALUE COUNT(1) FROM c"
            " WHERE c.survey_id = @survey_id AND c.is_deleted = false AND c.is_complete = true",
            parameters=params,
            partition_key=survey_id,
        )
        avg_results = await query_items(
            RESPONSES_CONTAINER,
            "SELECT VALUE AVG(c.completion_time) FROM c"
            " WHERE c.survey_id = @survey_id AND c.is_deleted = false AND c.is_complete = true",
            parameters=params,
            partition_key=survey_id,
        )
        avg = avg_results[0] if avg_results and isinstance(avg_results[0], (int, float)) else None
        return live, complete, avg

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, response: ResponseDocument) -> ResponseDocument:
        """
        Store a new response.

        Raises:
            ConflictError: The respondent already has a live response
        """
        try:
            data = await create_item(RESPONSES_CONTAINER, response.to_cosmos())
        except CosmosResourceExistsError as e:
            logger.info(f"Duplicate response rejected by unique key for survey {response.survey_id}")
            raise ConflictError("You have already responded to this survey") from e
        return ResponseDocument.model_validate(data)

    async def replace(self, response: ResponseDocument) -> ResponseDocument:
        data = await replace_item(RESPONSES_CONTAINER, response.to_cosmos(), etag=response.etag)
        return ResponseDocument.model_validate(data)
