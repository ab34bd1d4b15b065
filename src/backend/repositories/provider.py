"""
Repository provider for dependency injection.

This module provides a unified interface for accessing repositories
using Cosmos DB as the data store.

Usage:
    from repositories.provider import get_debate_repository, ...

    # In FastAPI dependencies:
    async def some_dependency(
        debate_repo: DebateRepositoryProtocol = Depends(get_debate_repository),
    ):
        debate = await debate_repo.get_by_id(debate_id)
"""

import logging
from typing import Optional, Protocol, runtime_checkable

from core.config import settings
from models.debate import DebateDocument
from models.response import ResponseDocument
from models.survey import SurveyDocument

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================


def is_cosmos_enabled() -> bool:
    """Check if Cosmos DB is configured."""
    # Cosmos DB can be configured via either:
    # 1. AZURE_COSMOS_ENDPOINT (for Azure deployment with RBAC)
    # 2. AZURE_COSMOS_CONNECTION_STRING (for local emulator)
    return bool(settings.AZURE_COSMOS_ENDPOINT or settings.AZURE_COSMOS_CONNECTION_STRING)


def _require_cosmos() -> None:
    if not is_cosmos_enabled():
        raise RuntimeError("Cosmos DB is not configured. Set AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING.")


# =============================================================================
# Repository Protocols (Interfaces)
# =============================================================================


@runtime_checkable
class DebateRepositoryProtocol(Protocol):
    """Protocol defining debate repository operations."""

    async def get_by_id(self, debate_id: str) -> Optional[DebateDocument]: ...
    async def list_debates(self, page: int = 1, per_page: int = 20, **filters) -> tuple[list[DebateDocument], int]: ...
    async def create(self, debate: DebateDocument) -> DebateDocument: ...
    async def replace(self, debate: DebateDocument) -> DebateDocument: ...


@runtime_checkable
class SurveyRepositoryProtocol(Protocol):
    """Protocol defining survey repository operations."""

    async def get_by_id(self, survey_id: str) -> Optional[SurveyDocument]: ...
    async def list_surveys(self, page: int = 1, per_page: int = 20, **filters) -> tuple[list[SurveyDocument], int]: ...
    async def create(self, survey: SurveyDocument) -> SurveyDocument: ...
    async def replace(self, survey: SurveyDocument) -> SurveyDocument: ...


@runtime_checkable
class ResponseRepositoryProtocol(Protocol):
    """Protocol defining survey response repository operations."""

    async def get_by_id(self, survey_id: str, response_id: str) -> Optional[ResponseDocument]: ...
    async def get_live_by_respondent(self, survey_id: str, respondent_ip_hash: str) -> Optional[ResponseDocument]: ...
    async def get_by_code(self, response_code: str) -> Optional[ResponseDocument]: ...
    async def list_for_survey(
        self, survey_id: str, include_deleted: bool = False, complete_only: bool = False
    ) -> list[ResponseDocument]: ...
    async def list_page(self, survey_id: str, **options) -> tuple[list[ResponseDocument], int]: ...
    async def completion_summary(self, survey_id: str) -> tuple[int, int, Optional[float]]: ...
    async def create(self, response: ResponseDocument) -> ResponseDocument: ...
    async def replace(self, response: ResponseDocument) -> ResponseDocument: ...


# =============================================================================
# Repository Factory Functions
# =============================================================================


async def get_debate_repository() -> DebateRepositoryProtocol:
    """Get the debate repository."""
    _require_cosmos()
    from repositories.cosmos_debate_repository import CosmosDebateRepository

    return CosmosDebateRepository()


async def get_survey_repository() -> SurveyRepositoryProtocol:
    """Get the survey repository."""
    _require_cosmos()
    from repositories.cosmos_survey_repository import CosmosSurveyRepository

    return CosmosSurveyRepository()


async def get_response_repository() -> ResponseRepositoryProtocol:
    """Get the survey response repository."""
    _require_cosmos()
    from repositories.cosmos_response_repository import CosmosResponseRepository

    return CosmosResponseRepository()
