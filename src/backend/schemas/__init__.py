"""Schemas module initialization."""

from schemas.common import AdminLoginRequest, AdminTokenResponse, MessageResponse, Pagination
from schemas.debate import DebateCreate, DebateDetail, DebateSummary, OpinionCreate, VoteRequest
from schemas.response import ResponseCreated, ResponseReceipt, ResponseSubmit
from schemas.survey import QuestionIn, SurveyCreate, SurveyPublic, SurveyUpdate

__all__ = [
    "AdminLoginRequest",
    "AdminTokenResponse",
    "MessageResponse",
    "Pagination",
    "DebateCreate",
    "DebateDetail",
    "DebateSummary",
    "OpinionCreate",
    "VoteRequest",
    "ResponseCreated",
    "ResponseReceipt",
    "ResponseSubmit",
    "QuestionIn",
    "SurveyCreate",
    "SurveyPublic",
    "SurveyUpdate",
]
