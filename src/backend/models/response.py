"""
Survey response documents stored in the 'responses' container.

Partition key: /survey_id
Unique key: /respondent_lock (one live response per respondent per survey)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from core.security import generate_response_code
from models.base import CosmosDocument, as_utc, utcnow
from models.survey import CHOICE_TYPES, TEXT_TYPES, QuestionType


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"


class DeletedBy(str, Enum):
    ADMIN = "admin"
    SYSTEM = "system"


class QualityFlag(str, Enum):
    TOO_FAST = "too_fast"
    ALL_SAME_ANSWERS = "all_same_answers"
    MINIMAL_TEXT_RESPONSES = "minimal_text_responses"


def deleted_lock(response_id: str) -> str:
    """Lock value for a soft-deleted response, which frees the respondent's slot."""
    return f"deleted:{response_id}"


class Answer(BaseModel):
    """
    One answer, tagged by question type.

    Exactly one of choice_id / choice_ids / text / rating is meaningful.
    """

    question_id: str
    question_type: QuestionType
    choice_id: Optional[str] = None
    choice_ids: list[str] = Field(default_factory=list)
    text: Optional[str] = None
    rating: Optional[int] = None
    answered_at: datetime = Field(default_factory=utcnow)
    time_spent: float = 0

    @property
    def is_choice(self) -> bool:
        return self.question_type in CHOICE_TYPES

    @property
    def is_text(self) -> bool:
        return self.question_type in TEXT_TYPES

    @property
    def first_choice(self) -> Optional[str]:
        """The single choice, or the first of a multi-select."""
        if self.choice_id:
            return self.choice_id
        return self.choice_ids[0] if self.choice_ids else None

    @property
    def selected(self) -> list[str]:
        if self.choice_id:
            return [self.choice_id]
        return list(self.choice_ids)


class ResponseDocument(CosmosDocument):
    """
    Response document stored in the 'responses' container.

    The respondent is only known by a salted hash of their address. The raw
    address is never stored.
    """

    survey_id: str  # Partition key
    response_code: str = Field(default_factory=generate_response_code)

    respondent_ip_hash: str
    respondent_lock: str = ""

    user_agent: Optional[str] = None
    browser: str = "unknown"
    device_type: DeviceType = DeviceType.UNKNOWN
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

    answers: list[Answer] = Field(default_factory=list)

    started_at: datetime
    submitted_at: datetime = Field(default_factory=utcnow)
    completion_time: int = 0  # seconds

    is_complete: bool = True
    is_deleted: bool = False
    deleted_by: Optional[DeletedBy] = None
    deleted_at: Optional[datetime] = None

    quality_score: int = Field(default=100, ge=0, le=100)
    quality_flags: list[QualityFlag] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utcnow)

    def model_post_init(self, __context: Any) -> None:
        if not self.respondent_lock:
            self.respondent_lock = deleted_lock(self.id) if self.is_deleted else self.respondent_ip_hash

    def get_answer(self, question_id: str) -> Optional[Answer]:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None

    def soft_delete(self, deleted_by: DeletedBy = DeletedBy.ADMIN, now: Optional[datetime] = None) -> None:
        self.is_deleted = True
        self.deleted_by = deleted_by
        self.deleted_at = now or utcnow()
        self.respondent_lock = deleted_lock(self.id)

    @property
    def respondent_id(self) -> str:
        """Stable, non-identifying label for exports."""
        return f"R{int(as_utc(self.created_at).timestamp() * 1000)}"

    def anonymize(self) -> dict[str, Any]:
        """Serializable view with every respondent identifier removed."""
        data = self.model_dump(
            mode="json",
            exclude={"respondent_ip_hash", "respondent_lock", "user_agent"},
        )
        data["respondent_id"] = self.respondent_id
        return data
