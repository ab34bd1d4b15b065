"""
Survey response schemas.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from core.sanitizer import sanitize_text
from schemas.common import Pagination
from services.answer_validator import SubmittedAnswer


class ResponseSubmit(BaseModel):
    """A respondent's submission."""

    answers: list[SubmittedAnswer] = Field(default_factory=list, max_length=200)
    started_at: datetime
    time_tracking: dict[str, float] = Field(default_factory=dict, description="Seconds spent per question id")
    referrer: Optional[str] = Field(None, max_length=2000)
    utm_source: Optional[str] = Field(None, max_length=200)
    utm_medium: Optional[str] = Field(None, max_length=200)
    utm_campaign: Optional[str] = Field(None, max_length=200)

    @field_validator("answers")
    @classmethod
    def strip_markup(cls, v: list[SubmittedAnswer]) -> list[SubmittedAnswer]:
        for answer in v:
            if answer.text is not None:
                answer.text = sanitize_text(answer.text)
        return v

    @property
    def utm(self) -> dict[str, Optional[str]]:
        return {"source": self.utm_source, "medium": self.utm_medium, "campaign": self.utm_campaign}


class ResponseCreated(BaseModel):
    success: bool = True
    message: str = "Response submitted"
    response_id: str
    response_code: str
    response_url: str
    submitted_at: datetime


class ReceiptAnswer(BaseModel):
    question_id: str
    question_title: str
    value: str


class ResponseReceipt(BaseModel):
    """What a respondent sees when following their receipt link."""

    success: bool = True
    response_code: str
    survey_id: str
    survey_title: str
    submitted_at: datetime
    answers: list[ReceiptAnswer]


class ResponseDetail(BaseModel):
    """Admin view of one response, respondent identifiers removed."""

    success: bool = True
    response: dict[str, Any]


class ResponseListResponse(BaseModel):
    success: bool = True
    responses: list[dict[str, Any]]
    pagination: Pagination
