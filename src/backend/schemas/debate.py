"""
Debate-related Pydantic schemas.

Request models strip markup from every free-text field before the values
reach the service layer.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from core.sanitizer import sanitize_list, sanitize_text
from models.debate import ANONYMOUS_AUTHOR, DebateCategory, DebateSettings, DebateStatus
from schemas.common import Pagination, admin_password_field

# ============================================================================
# Requests
# ============================================================================


class DebateSettingsIn(BaseModel):
    """Participation rules chosen by the creator."""

    allow_multiple_choice: bool = False
    show_results_before_end: bool = True
    allow_anonymous_vote: bool = True
    allow_opinion: bool = True
    max_votes_per_ip: int = Field(1, ge=1, le=100)

    def to_model(self) -> DebateSettings:
        return DebateSettings(**self.model_dump())


class DebateCreate(BaseModel):
    """Schema for creating a debate."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: DebateCategory = DebateCategory.GENERAL
    tags: list[str] = Field(default_factory=list, max_length=10)
    options: list[str] = Field(..., min_length=2, max_length=20, description="Option labels, in display order")
    start_at: datetime
    end_at: datetime
    author_nickname: Optional[str] = Field(None, max_length=50)
    admin_password: str = admin_password_field()
    settings: DebateSettingsIn = Field(default_factory=DebateSettingsIn)

    @field_validator("title", "description", "author_nickname")
    @classmethod
    def strip_markup(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)

    @field_validator("tags", "options")
    @classmethod
    def strip_markup_list(cls, v: list[str]) -> list[str]:
        return sanitize_list(v)


class DebateUpdate(BaseModel):
    """
    Admin edit. Every field is optional; the admin password is re-checked.

    The schedule and the options can only change while the debate is not
    active, and options only while no votes exist.
    """

    admin_password: str = Field(..., min_length=1, max_length=128)
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[DebateCategory] = None
    tags: Optional[list[str]] = Field(None, max_length=10)
    is_hidden: Optional[bool] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    options: Optional[list[str]] = Field(None, max_length=20)

    @field_validator("title", "description")
    @classmethod
    def strip_markup(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)

    @field_validator("tags", "options")
    @classmethod
    def strip_markup_list(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return None if v is None else sanitize_list(v)


class DebateDelete(BaseModel):
    admin_password: str = Field(..., min_length=1, max_length=128)


class VoteRequest(BaseModel):
    """One or more option ids (several only on multiple-choice debates)."""

    option_ids: list[str] = Field(default_factory=list, max_length=20)
    nickname: Optional[str] = Field(None, max_length=50)
    is_anonymous: bool = False

    @field_validator("nickname")
    @classmethod
    def strip_markup(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)


class OpinionCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=1000)
    author_nickname: Optional[str] = Field(None, max_length=50)
    selected_option_id: Optional[str] = None
    is_anonymous: bool = False

    @field_validator("content", "author_nickname")
    @classmethod
    def strip_markup(cls, v: Optional[str]) -> Optional[str]:
        return sanitize_text(v)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("Opinion cannot be empty")
        return v

    @property
    def nickname_or_default(self) -> str:
        return self.author_nickname or ANONYMOUS_AUTHOR


# ============================================================================
# Responses
# ============================================================================


class DebateOptionView(BaseModel):
    id: str
    label: str
    order: int = 0
    vote_count: Optional[int] = Field(None, description="Only present while results are visible")
    percentage: Optional[int] = Field(None, description="Only present while results are visible")


class OpinionView(BaseModel):
    id: str
    author_nickname: str
    selected_option_id: Optional[str] = None
    content: str
    is_anonymous: bool = False
    created_at: datetime


class DebateResults(BaseModel):
    options: list[DebateOptionView]
    total_votes: int
    unique_voters: int


class DebateSummary(BaseModel):
    """List item."""

    id: str
    title: str
    description: Optional[str] = None
    category: str
    tags: list[str] = Field(default_factory=list)
    author_nickname: str
    status: DebateStatus
    start_at: datetime
    end_at: datetime
    total_votes: int = 0
    opinion_count: int = 0
    view_count: int = 0
    time_remaining_seconds: int = 0
    created_at: datetime


class DebateDetail(DebateSummary):
    """Public debate page."""

    options: list[DebateOptionView]
    settings: DebateSettingsIn
    unique_voters: int = 0
    can_vote: bool = False
    results: Optional[DebateResults] = None
    opinions: list[OpinionView] = Field(default_factory=list)
    is_hidden: bool = False


class DebateListResponse(BaseModel):
    success: bool = True
    debates: list[DebateSummary]
    pagination: Pagination


class DebateCreated(BaseModel):
    success: bool = True
    id: str
    status: DebateStatus
    public_url: str
    admin_url: str


class VoteResult(BaseModel):
    success: bool = True
    message: str = "Vote recorded"
    results: Optional[DebateResults] = None
    can_vote: bool = False


class OpinionCreated(BaseModel):
    success: bool = True
    opinion: OpinionView
