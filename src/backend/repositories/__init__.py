"""Repository modules for database access."""

from repositories.cosmos_debate_repository import CosmosDebateRepository
from repositories.cosmos_response_repository import CosmosResponseRepository
from repositories.cosmos_survey_repository import CosmosSurveyRepository

__all__ = [
    "CosmosDebateRepository",
    "CosmosSurveyRepository",
    "CosmosResponseRepository",
]
