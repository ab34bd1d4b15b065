"""
Survey-related Pydantic schemas.
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from core.sanitizer import sanitize_list, sanitize_text
from models.survey import (
    CHOICE_TYPES,
    Question,
    QuestionProperties,
    QuestionType,
    QuestionValidations,
    SkipRule,
    SurveySettings,
    SurveyStatus,
    ThankYouScreen,
    WelcomeScreen,
)
from schemas.common import Pagination, admin_password_field

RATING_SCALES = {5, 10}

# ============================================================================
# Requests
# ============================================================================


class QuestionIn(BaseModel):
    """A question as authored by the survey creator."""

    id: Optional[str] = Field(None, description="Keep an existing id when editing")
    title: str = Field(..., min_length=1, max_length=500)
    type: QuestionType
    required: bool = False
    order: int = 0
    properties: QuestionProperties = Field(default_factory=QuestionProperties)
    validations: QuestionValidations = Field(default_factory=QuestionValidations)
    skip_logic: Optional[SkipRule] = None

    @field_validator("title")
    @classmethod
    def strip_markup(cls, v: str) -> str:
        return sanitize_text(v)

    @model_validator(mode="after")
    def check_type_properties(self) -> "QuestionIn":
        for choice in self.properties.choices:
            choice.label = sanitize_text(choice.label) or ""
        if self.type in CHOICE_TYPES:
            labels = [choice.label for choice in self.properties.choices if choice.label]
            if len(labels) < 2:
                raise ValueError("Choice questions need at least two labelled choices")
        if self.type == QuestionType.RATING and self.properties.rating_scale not in RATING_SCALES:
            raise ValueError("Rating scale must be 5 or 10")
        low, high = self.properties.min_selection, self.properties.max_selection
        if low is not None and high is not None and low > high:
            raise ValueError("min_selection cannot exceed max_selection")
        return self

    def to_model(self) -> Question:
        data = self.model_dump(exclude_none=True)
        return Question.model_validate(data)


class SurveyCreate(BaseModel):
    """Schema for creating a survey."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    author_nickname: Optional[str] = Field(None, max_length=50)
    tags: list[str] = Field(default_factory=list, max_length=10)
    questions: list[QuestionIn] = Field(..., min_length=1, max_length=100)
    welcome_screen: WelcomeScreen = Field(default_factory=WelcomeScreen)
    thankyou_screen: ThankYouScreen = Field(default_factory=ThankYouScreen)
    settings: SurveySettings = Field(default_factory=SurveySettings)
    admin_password: str = admin_password_field()

    @field_validator("title", "description", "author_nickname")
    @classmethod
    def strip_markup(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)

    @field_validator("tags")
    @classmethod
    def strip_markup_list(cls, v: list[str]) -> list[str]:
        return sanitize_list(v)


class SurveyUpdate(BaseModel):
    """Admin edit. Questions are only accepted until the first response."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    tags: Optional[list[str]] = Field(None, max_length=10)
    questions: Optional[list[QuestionIn]] = Field(None, max_length=100)
    welcome_screen: Optional[WelcomeScreen] = None
    thankyou_screen: Optional[ThankYouScreen] = None
    is_hidden: Optional[bool] = None

    @field_validator("title", "description")
    @classmethod
    def strip_markup(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)

    @field_validator("tags")
    @classmethod
    def strip_markup_list(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else sanitize_list(v)

    def to_updates(self) -> dict[str, Any]:
        updates: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "tags": self.tags,
            "welcome_screen": self.welcome_screen,
            "thankyou_screen": self.thankyou_screen,
            "is_hidden": self.is_hidden,
        }
        if self.questions is not None:
            updates["questions"] = [question.to_model() for question in self.questions]
        return updates


class SurveyStatusUpdate(BaseModel):
    status: Literal["open", "closed"]


class SurveySettingsUpdate(BaseModel):
    """Partial settings change; only the fields sent are applied."""

    response_limit: Optional[int] = Field(None, ge=1)
    close_at: Optional[datetime] = None
    show_progress_bar: Optional[bool] = None
    show_question_number: Optional[bool] = None
    allow_back_navigation: Optional[bool] = None
    autosave_progress: Optional[bool] = None
    language: Optional[str] = Field(None, max_length=10)


class UnlockIpRequest(BaseModel):
    ip_address: str = Field(..., min_length=1, max_length=64)


# ============================================================================
# Responses
# ============================================================================


class SurveySummary(BaseModel):
    """List item."""

    id: str
    title: str
    description: Optional[str] = None
    author_nickname: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    status: SurveyStatus
    question_count: int = 0
    response_count: int = 0
    close_at: Optional[datetime] = None
    created_at: datetime


class SurveyPublic(SurveySummary):
    """Public survey page: what a respondent needs to fill it in."""

    questions: list[Question]
    welcome_screen: WelcomeScreen
    thankyou_screen: ThankYouScreen
    settings: SurveySettings
    view_count: int = 0
    can_respond: bool = False
    has_responded: bool = False
    is_closed: bool = False


class SurveyAdminView(SurveyPublic):
    """Everything the survey's admin sees."""

    is_hidden: bool = False
    is_editable: bool = True
    can_edit: bool = True
    first_response_at: Optional[datetime] = None
    completion_rate: int = 0
    avg_completion_time: int = 0
    last_response_at: Optional[datetime] = None
    updated_at: datetime


class SurveyListResponse(BaseModel):
    success: bool = True
    surveys: list[SurveySummary]
    pagination: Pagination


class SurveyCreated(BaseModel):
    success: bool = True
    id: str
    public_url: str
    admin_url: str
    admin_token: str
    token_expires_at: datetime


class SurveyResults(BaseModel):
    """Public aggregate results; never contains free text."""

    success: bool = True
    survey_id: str
    title: str
    total_responses: int
    completion_rate: int
    question_stats: dict[str, Any]


class SurveyStatistics(BaseModel):
    success: bool = True
    survey_id: str
    statistics: dict[str, Any]
