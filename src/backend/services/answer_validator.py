"""
Validation of submitted survey answers against the survey's questions.

Questions are walked in survey order so that required questions with no
submitted answer are caught, and so that skip rules can be evaluated against
the answers collected before them. Answers to unknown question ids are
ignored; clients may be working from a stale copy of the survey.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from core.exceptions import InvalidInputError
from models.response import Answer
from models.survey import CHOICE_TYPES, TEXT_TYPES, Question, QuestionType, SkipOperator, SkipRule, SurveyDocument


class SubmittedAnswer(BaseModel):
    """An answer as sent by the client, before validation."""

    question_id: str
    choice_id: Optional[str] = None
    choice_ids: list[str] = Field(default_factory=list)
    text: Optional[str] = None
    rating: Optional[int] = None
    time_spent: Optional[float] = None


# ============================================================================
# Skip logic
# ============================================================================


def _answer_values(answer: Answer) -> list[str]:
    if answer.question_type in CHOICE_TYPES:
        return answer.selected
    if answer.question_type in TEXT_TYPES:
        return [answer.text] if answer.text else []
    if answer.rating is not None:
        return [str(answer.rating)]
    return []


def _expected_values(value: Any) -> set[str]:
    if isinstance(value, (list, tuple, set)):
        return {str(item) for item in value}
    if value is None:
        return set()
    return {str(value)}


def evaluate_skip_rule(rule: SkipRule, answers: dict[str, Answer]) -> bool:
    """Whether a question guarded by `rule` is shown, given earlier answers."""
    answer = answers.get(rule.question_id)
    values = _answer_values(answer) if answer else []
    expected = _expected_values(rule.value)

    if rule.operator == SkipOperator.CONTAINS:
        if not values or not expected:
            return False
        if answer.question_type in TEXT_TYPES:
            text = values[0].lower()
            return all(item.lower() in text for item in expected)
        return expected.issubset(values)

    matches = bool(values) and set(values) == expected
    if rule.operator == SkipOperator.NOT_EQUALS:
        return not matches
    return matches


def is_question_shown(question: Question, answers: dict[str, Answer]) -> bool:
    if question.skip_logic is None:
        return True
    return evaluate_skip_rule(question.skip_logic, answers)


# ============================================================================
# Per-type validation
# ============================================================================


def has_usable_value(submitted: Optional[SubmittedAnswer], question_type: str) -> bool:
    if submitted is None:
        return False
    if question_type == QuestionType.SINGLE_CHOICE:
        return bool(submitted.choice_id)
    if question_type == QuestionType.MULTIPLE_CHOICE:
        return bool(submitted.choice_ids)
    if question_type in TEXT_TYPES:
        return bool(submitted.text and submitted.text.strip())
    if question_type == QuestionType.RATING:
        return submitted.rating is not None
    return False


def _validate_single_choice(question: Question, submitted: SubmittedAnswer) -> dict[str, Any]:
    if submitted.choice_id not in question.choice_ids:
        raise InvalidInputError(f"Invalid choice for question: {question.title}", field=question.id)
    return {"choice_id": submitted.choice_id}


def _validate_multiple_choice(question: Question, submitted: SubmittedAnswer) -> dict[str, Any]:
    selected = list(dict.fromkeys(submitted.choice_ids))
    if any(choice_id not in question.choice_ids for choice_id in selected):
        raise InvalidInputError(f"Invalid choice for question: {question.title}", field=question.id)

    props = question.properties
    if props.min_selection and len(selected) < props.min_selection:
        raise InvalidInputError(
            f"Select at least {props.min_selection} options for: {question.title}",
            field=question.id,
        )
    if props.max_selection and len(selected) > props.max_selection:
        raise InvalidInputError(
            f"Select at most {props.max_selection} options for: {question.title}",
            field=question.id,
        )
    return {"choice_ids": selected}


def _validate_text(question: Question, submitted: SubmittedAnswer) -> dict[str, Any]:
    text = (submitted.text or "").strip()
    max_length = question.max_text_length
    if max_length and len(text) > max_length:
        raise InvalidInputError(
            f"Answer is too long for: {question.title} (max {max_length} characters)",
            field=question.id,
        )
    min_length = question.min_text_length
    if min_length and text and len(text) < min_length:
        raise InvalidInputError(
            f"Answer is too short for: {question.title} (min {min_length} characters)",
            field=question.id,
        )
    return {"text": text}


def _validate_rating(question: Question, submitted: SubmittedAnswer) -> dict[str, Any]:
    scale = question.properties.rating_scale
    if submitted.rating is None or not 1 <= submitted.rating <= scale:
        raise InvalidInputError(
            f"Rating must be between 1 and {scale} for: {question.title}",
            field=question.id,
        )
    return {"rating": submitted.rating}


_VALIDATORS = {
    QuestionType.SINGLE_CHOICE.value: _validate_single_choice,
    QuestionType.MULTIPLE_CHOICE.value: _validate_multiple_choice,
    QuestionType.SHORT_TEXT.value: _validate_text,
    QuestionType.LONG_TEXT.value: _validate_text,
    QuestionType.RATING.value: _validate_rating,
}


def validate_answers(
    survey: SurveyDocument,
    submitted: list[SubmittedAnswer],
    now: datetime,
    time_tracking: Optional[dict[str, float]] = None,
) -> list[Answer]:
    """
    Validate a submission and build the answers to store.

    Raises:
        InvalidInputError: On the first question that fails, naming it
    """
    time_tracking = time_tracking or {}
    by_question: dict[str, SubmittedAnswer] = {}
    for item in submitted:
        by_question.setdefault(item.question_id, item)

    collected: dict[str, Answer] = {}
    for question in survey.ordered_questions():
        if not is_question_shown(question, collected):
            continue

        answer_in = by_question.get(question.id)
        question_type = str(getattr(question.type, "value", question.type))

        if not has_usable_value(answer_in, question_type):
            if question.required:
                raise InvalidInputError(
                    f"Please answer the required question: {question.title}",
                    field=question.id,
                )
            # Blank optional text is kept so quality scoring sees it
            if answer_in is not None and answer_in.text is not None and question_type in TEXT_TYPES:
                collected[question.id] = Answer(
                    question_id=question.id,
                    question_type=question_type,
                    answered_at=now,
                    time_spent=time_tracking.get(question.id, answer_in.time_spent or 0),
                    text="",
                )
            continue

        values = _VALIDATORS[question_type](question, answer_in)
        time_spent = time_tracking.get(question.id, answer_in.time_spent or 0)
        collected[question.id] = Answer(
            question_id=question.id,
            question_type=question_type,
            answered_at=now,
            time_spent=time_spent,
            **values,
        )

    return list(collected.values())
