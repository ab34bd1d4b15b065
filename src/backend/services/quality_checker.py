"""
Response quality heuristics.

Each submitted response gets a 0-100 score at intake. The score starts at
100 and loses a fixed penalty for every heuristic it trips:

1. Too fast - less than N seconds per answer
2. All same answers - every choice answer picks the same first choice
3. Minimal text - every text answer is (nearly) empty

The score is stored with the response and never recomputed.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from core.config import settings
from models.response import Answer, QualityFlag

logger = structlog.get_logger(__name__)


# =============================================================================
# Configuration
# =============================================================================


class QualityConfig:
    """
    Quality heuristic thresholds and penalties.

    Values are read from settings once, at import. To use other thresholds,
    subclass and pass the subclass as `config` to score_response.
    """

    SECONDS_PER_ANSWER = settings.QUALITY_SECONDS_PER_ANSWER
    TOO_FAST_PENALTY = settings.QUALITY_TOO_FAST_PENALTY

    # Needs at least this many choice answers before the pattern counts
    SAME_CHOICE_MIN_ANSWERS = settings.QUALITY_SAME_CHOICE_MIN_ANSWERS
    SAME_CHOICE_PENALTY = settings.QUALITY_SAME_CHOICE_PENALTY

    MIN_TEXT_LENGTH = settings.QUALITY_MIN_TEXT_LENGTH
    MINIMAL_TEXT_PENALTY = settings.QUALITY_MINIMAL_TEXT_PENALTY

    MAX_SCORE = 100


class QualityAssessment(BaseModel):
    """Result of scoring one response."""

    quality_score: int = Field(default=QualityConfig.MAX_SCORE, ge=0, le=100)
    quality_flags: list[QualityFlag] = Field(default_factory=list)

    def penalize(self, flag: QualityFlag, penalty: int) -> None:
        if flag in self.quality_flags:
            return
        self.quality_flags.append(flag)
        self.quality_score -= penalty


# =============================================================================
# Heuristics
# =============================================================================


def is_too_fast(answers: list[Answer], completion_time: float, config: type[QualityConfig] = QualityConfig) -> bool:
    return completion_time < len(answers) * config.SECONDS_PER_ANSWER


def has_same_choice_pattern(answers: list[Answer], config: type[QualityConfig] = QualityConfig) -> bool:
    choice_answers = [answer for answer in answers if answer.is_choice]
    if len(choice_answers) < config.SAME_CHOICE_MIN_ANSWERS:
        return False
    first = choice_answers[0].first_choice
    return all(answer.first_choice == first for answer in choice_answers)


def has_minimal_text(answers: list[Answer], config: type[QualityConfig] = QualityConfig) -> bool:
    text_answers = [answer for answer in answers if answer.is_text]
    if not text_answers:
        return False
    return all(len((answer.text or "").strip()) < config.MIN_TEXT_LENGTH for answer in text_answers)


def score_response(
    answers: list[Answer],
    completion_time: float,
    config: Optional[type[QualityConfig]] = None,
) -> QualityAssessment:
    """
    Score a response's answers.

    Penalties are independent and additive; the floor at 0 is applied once
    after all of them.
    """
    config = config or QualityConfig
    # Penalties are tallied unclamped and floored once at the end
    assessment = QualityAssessment.model_construct(quality_score=config.MAX_SCORE, quality_flags=[])

    if is_too_fast(answers, completion_time, config):
        assessment.penalize(QualityFlag.TOO_FAST, config.TOO_FAST_PENALTY)

    if has_same_choice_pattern(answers, config):
        assessment.penalize(QualityFlag.ALL_SAME_ANSWERS, config.SAME_CHOICE_PENALTY)

    if has_minimal_text(answers, config):
        assessment.penalize(QualityFlag.MINIMAL_TEXT_RESPONSES, config.MINIMAL_TEXT_PENALTY)

    result = QualityAssessment(
        quality_score=max(0, assessment.quality_score),
        quality_flags=assessment.quality_flags,
    )
    if result.quality_flags:
        logger.debug(
            "response_quality_flagged",
            quality_score=result.quality_score,
            quality_flags=[str(getattr(flag, "value", flag)) for flag in result.quality_flags],
        )
    return result
