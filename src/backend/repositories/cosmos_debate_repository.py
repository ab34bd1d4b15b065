"""
Cosmos DB Debate repository.

Debates are single documents with embedded options, votes, voter history and
opinions. Writes replace the whole document, conditional on the etag read.
"""

import logging
from typing import Any, Optional

from db.cosmos_session import (
    DEBATES_CONTAINER,
    create_item,
    query_count,
    query_items,
    read_item,
    replace_item,
)
from models.debate import DebateDocument, DebateStatus

logger = logging.getLogger(__name__)

# Public sort keys -> ORDER BY clause
DEBATE_SORTS = {
    "latest": "c.created_at DESC",
    "popular": "c.stats.total_votes DESC",
    "views": "c.stats.view_count DESC",
    "ending_soon": "c.end_at ASC",
}


class CosmosDebateRepository:
    """Repository for debate operations using Cosmos DB."""

    # ========================================================================
    # Read Operations
    # ========================================================================

    async def get_by_id(self, debate_id: str) -> Optional[DebateDocument]:
        """Get a debate by ID (point read). Soft-deleted debates are returned too."""
        data = await read_item(DEBATES_CONTAINER, debate_id, partition_key=debate_id)
        if data is None:
            return None
        return DebateDocument.model_validate(data)

    async def list_debates(
        self,
        page: int = 1,
        per_page: int = 20,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "latest",
    ) -> tuple[list[DebateDocument], int]:
        """List visible debates with filters and pagination."""
        offset = (page - 1) * per_page

        conditions = ["c.is_deleted = false", "c.is_hidden = false"]
        parameters: list[dict[str, Any]] = []

        if category and category != "all":
            conditions.append("c.category = @category")
            parameters.append({"name": "@category", "value": category})

        if sort == "ending_soon":
            # Only debates still accepting votes can be "ending soon"
            status = DebateStatus.ACTIVE.value
        if status and status != "all":
            conditions.append("c.status = @status")
            parameters.append({"name": "@status", "value": status})

        if search:
            conditions.append(
                "(CONTAINS(c.title, @search, true)"
                " OR CONTAINS(c.description, @search, true)"
                " OR EXISTS(SELECT VALUE t FROM t IN c.tags WHERE CONTAINS(t, @search, true)))"
            )
            parameters.append({"name": "@search", "value": search})

        where_clause = " AND ".join(conditions)
        order_by = DEBATE_SORTS.get(sort, DEBATE_SORTS["latest"])

        count_query = f"SELECT VALUE COUNT(1) FROM c WHERE {where_clause}"
        total = await query_count(DEBATES_CONTAINER, count_query, parameters=parameters)

        query = f"""
            SELECT * FROM c
            WHERE {where_clause}
            ORDER BY {order_by}
            OFFSET @offset LIMIT @limit
        """
        results = await query_items(
            DEBATES_CONTAINER,
            query,
            parameters=parameters
            + [
                {"name": "@offset", "value": offset},
                {"name": "@limit", "value": per_page},
            ],
        )
        return [DebateDocument.model_validate(r) for r in results], total

    # ========================================================================
    # Write Operations
    # ========================================================================

    async def create(self, debate: DebateDocument) -> DebateDocument:
        """Store a new debate."""
        data = await create_item(DEBATES_CONTAINER, debate.to_cosmos())
        logger.info(f"Created debate {debate.id}: {debate.title[:50]}")
        return DebateDocument.model_validate(data)

    async def replace(self, debate: DebateDocument) -> DebateDocument:
        """
        Write back a debate loaded earlier.

        Raises:
            ConcurrencyConflictError: If it changed since it was read
        """
        data = await replace_item(DEBATES_CONTAINER, debate.to_cosmos(), etag=debate.etag)
        return DebateDocument.model_validate(data)
