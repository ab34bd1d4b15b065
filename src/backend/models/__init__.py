"""Cosmos DB document models."""

from models.base import AdminCredential, CosmosDocument
from models.debate import DebateDocument, DebateOption, DebateStatus, Opinion
from models.response import Answer, ResponseDocument
from models.survey import Question, QuestionType, SurveyDocument, SurveyStatus

__all__ = [
    "AdminCredential",
    "CosmosDocument",
    "DebateDocument",
    "DebateOption",
    "DebateStatus",
    "Opinion",
    "Answer",
    "ResponseDocument",
    "Question",
    "QuestionType",
    "SurveyDocument",
    "SurveyStatus",
]
