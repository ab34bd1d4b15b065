"""
Cosmos DB Survey repository.

Handles survey CRUD operations with embedded questions.
"""

import logging
from typing import Any, Optional

from db.cosmos_session import (
    SURVEYS_CONTAINER,
    create_item,
    query_count,
    query_items,
    read_item,
    replace_item,
)
from models.survey import SurveyDocument, SurveyStatus

logger = logging.getLogger(__name__)

SURVEY_SORTS = {
    "latest": "c.created_at DESC",
    "popular": "c.stats.response_count DESC",
    "closing": "c.settings.close_at ASC",
}


class CosmosSurveyRepository:
    """Repository for survey operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, survey_id: str) -> Optional[SurveyDocument]:
        """Get a survey by ID (point read). Soft-deleted surveys are returned too."""
        data = await read_item(SURVEYS_CONTAINER, survey_id, partition_key=survey_id)
        if data is None:
            return None
        return SurveyDocument.model_validate(data)

    async def list_surveys(
        self,
        page: int = 1,
        per_page: int = 20,
        status: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "latest",
    ) -> tuple[list[SurveyDocument], int]:
        """List visible surveys with filters and pagination."""
        offset = (page - 1) * per_page

        conditions = ["c.is_deleted = false", "c.is_hidden = false"]
        parameters: list[dict[str, Any]] = []

        if sort == "closing":
            status = SurveyStatus.OPEN.value
            conditions.append("IS_DEFINED(c.settings.close_at) AND NOT IS_NULL(c.settings.close_at)")
        if status:
            conditions.append("c.status = @status")
            parameters.append({"name": "@status", "value": status})

        if tag:
            conditions.append("ARRAY_CONTAINS(c.tags, @tag)")
            parameters.append({"name": "@tag", "value": tag})

        if search:
            conditions.append("(CONTAINS(c.title, @search, true) OR CONTAINS(c.description, @search, true))")
            parameters.append({"name": "@search", "value": search})

        where_clause = " AND ".join(conditions)
        order_by = SURVEY_SORTS.get(sort, SURVEY_SORTS["latest"])

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await query_count(SURVEYS_CONTAINER, count_query, parameters=parameters)

        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY {order_by}
            OFFSET @offset LIMIT @limit
        """
        results = await query_items(
            SURVEYS_CONTAINER,
            query,
            parameters=parameters
            + [
                {"name": "@offset", "value": offset},
                {"name": "@limit", "value": per_page},
            ],
        )
        return [SurveyDocument.model_validate(r) for r in results], total

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, survey: SurveyDocument) -> SurveyDocument:
        """Store a new survey."""
        data = await create_item(SURVEYS_CONTAINER, survey.to_cosmos())
        logger.info(f"Created survey {survey.id}: {survey.title[:50]}")
        return SurveyDocument.model_validate(data)

    async def replace(self, survey: SurveyDocument) -> SurveyDocument:
        """
        Write back a survey loaded earlier.

        Raises:
            ConcurrencyConflictError: If it changed since it was read
        """
        data = await replace_item(SURVEYS_CONTAINER, survey.to_cosmos(), etag=survey.etag)
        return SurveyDocument.model_validate(data)
