"""
Survey aggregate stored in the 'surveys' container.

Partition key: /id

Responses are separate documents (see models/response.py); the survey only
carries counters derived from them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from core.rounding import percentage, round_half_up
from core.security import generate_public_id
from models.base import AdminCredential, CosmosDocument, as_utc, utcnow

# ============================================================================
# Enums
# ============================================================================


class SurveyStatus(str, Enum):
    DRAFT = "draft"
    OPEN = "open"
    CLOSED = "closed"


class QuestionType(str, Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"
    RATING = "rating"


CHOICE_TYPES = {QuestionType.SINGLE_CHOICE.value, QuestionType.MULTIPLE_CHOICE.value}
TEXT_TYPES = {QuestionType.SHORT_TEXT.value, QuestionType.LONG_TEXT.value}


class SkipOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"


# ============================================================================
# Questions
# ============================================================================


class Choice(BaseModel):
    id: str = Field(default_factory=generate_public_id)
    label: str


class RatingLabels(BaseModel):
    left: Optional[str] = None
    center: Optional[str] = None
    right: Optional[str] = None


class QuestionProperties(BaseModel):
    """Type-specific question configuration."""

    choices: list[Choice] = Field(default_factory=list)
    max_length: Optional[int] = Field(default=None, le=5000)
    min_length: Optional[int] = Field(default=None, ge=0)
    max_selection: Optional[int] = None
    min_selection: Optional[int] = None
    rating_scale: int = 5
    labels: Optional[RatingLabels] = None


class QuestionValidations(BaseModel):
    max_characters: Optional[int] = None
    min_characters: Optional[int] = None


class SkipRule(BaseModel):
    """
    Show a question only when an earlier answer matches.

    `value` is compared against the referenced answer's choice id(s), text or
    rating; `contains` matches a member of a multi-select or a substring of
    text.
    """

    question_id: str
    operator: SkipOperator = SkipOperator.EQUALS
    value: Any = None


class Question(BaseModel):
    id: str = Field(default_factory=generate_public_id)
    title: str
    type: QuestionType
    required: bool = False
    order: int = 0
    properties: QuestionProperties = Field(default_factory=QuestionProperties)
    validations: QuestionValidations = Field(default_factory=QuestionValidations)
    skip_logic: Optional[SkipRule] = None

    def choice_label(self, choice_id: Optional[str]) -> Optional[str]:
        for choice in self.properties.choices:
            if choice.id == choice_id:
                return choice.label
        return None

    @property
    def choice_ids(self) -> set[str]:
        return {choice.id for choice in self.properties.choices}

    @property
    def max_text_length(self) -> Optional[int]:
        return self.validations.max_characters or self.properties.max_length

    @property
    def min_text_length(self) -> Optional[int]:
        return self.validations.min_characters or self.properties.min_length


# ============================================================================
# Screens, Settings, Stats
# ============================================================================


class WelcomeScreen(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    button_text: str = "Start"
    show_button: bool = True


class ThankYouScreen(BaseModel):
    title: str = "Thank you for your response!"
    description: Optional[str] = None
    show_response_count: bool = True


class SurveySettings(BaseModel):
    # Presentation only
    show_progress_bar: bool = True
    show_question_number: bool = True
    allow_back_navigation: bool = True
    autosave_progress: bool = True
    language: str = "en"

    response_limit: Optional[int] = Field(default=None, ge=1)
    close_at: Optional[datetime] = None


class SurveyStats(BaseModel):
    response_count: int = 0
    completion_rate: int = 0
    avg_completion_time: int = 0
    last_response_at: Optional[datetime] = None
    view_count: int = 0


# ============================================================================
# Survey Document
# ============================================================================


class SurveyDocument(CosmosDocument):
    """
    Survey document stored in the 'surveys' container.

    Partition key: /id
    """

    title: str
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    author_nickname: Optional[str] = None
    creator_ip_hash: str
    admin: AdminCredential

    status: SurveyStatus = SurveyStatus.OPEN
    is_hidden: bool = False
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    questions: list[Question] = Field(default_factory=list)
    welcome_screen: WelcomeScreen = Field(default_factory=WelcomeScreen)
    thankyou_screen: ThankYouScreen = Field(default_factory=ThankYouScreen)
    settings: SurveySettings = Field(default_factory=SurveySettings)
    stats: SurveyStats = Field(default_factory=SurveyStats)

    # Structural edits lock permanently once the first response lands
    first_response_at: Optional[datetime] = None
    is_editable: bool = True

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def ordered_questions(self) -> list[Question]:
        return sorted(self.questions, key=lambda question: question.order)

    def can_receive_response(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        if self.status != SurveyStatus.OPEN:
            return False
        if self.is_hidden or self.is_deleted:
            return False
        limit = self.settings.response_limit
        if limit and self.stats.response_count >= limit:
            return False
        if self.settings.close_at and now > as_utc(self.settings.close_at):
            return False
        return True

    def can_edit(self) -> bool:
        return self.is_editable and self.first_response_at is None

    def is_closed(self, now: Optional[datetime] = None) -> bool:
        return self.status == SurveyStatus.CLOSED or not self.can_receive_response(now)

    def record_response(
        self,
        now: datetime,
        live_count: int,
        complete_count: int,
        avg_completion_time: Optional[float],
    ) -> None:
        """
        Fold a newly stored response into the survey's counters.

        `live_count`, `complete_count` and `avg_completion_time` describe all
        non-deleted responses, including the new one.
        """
        self.stats.response_count += 1
        self.stats.last_response_at = now
        if self.first_response_at is None:
            self.first_response_at = now
            self.is_editable = False
        self.refresh_completion_stats(live_count, complete_count, avg_completion_time)
        self.updated_at = now

    def record_response_removed(self, now: datetime) -> None:
        self.stats.response_count = max(0, self.stats.response_count - 1)
        self.updated_at = now

    def refresh_completion_stats(
        self,
        live_count: int,
        complete_count: int,
        avg_completion_time: Optional[float],
    ) -> None:
        self.stats.completion_rate = percentage(complete_count, live_count)
        if avg_completion_time is not None:
            self.stats.avg_completion_time = int(round_half_up(avg_completion_time))

    def record_view(self) -> None:
        self.stats.view_count += 1

    def soft_delete(self, now: Optional[datetime] = None) -> None:
        """Delete and close; responses are kept."""
        now = now or utcnow()
        self.is_deleted = True
        self.status = SurveyStatus.CLOSED
        self.deleted_at = now
        self.updated_at = now
