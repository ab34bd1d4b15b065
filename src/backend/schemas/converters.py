"""
Schema converter functions.

Centralized helpers that turn stored documents into API schemas. Public
views never carry admin credentials, IP hashes or vote records.
"""

from datetime import datetime
from typing import Any, Optional

from models.base import utcnow
from models.debate import DebateDocument, Opinion
from models.response import ResponseDocument
from models.survey import SurveyDocument
from schemas.debate import (
    DebateDetail,
    DebateOptionView,
    DebateResults,
    DebateSettingsIn,
    DebateSummary,
    OpinionView,
)
from schemas.response import ReceiptAnswer, ResponseReceipt
from schemas.survey import SurveyAdminView, SurveyPublic, SurveySummary
from services.csv_export import answer_cell

# ============================================================================
# Debates
# ============================================================================


def _summary_fields(debate: DebateDocument, now: datetime) -> dict[str, Any]:
    return {
        "id": debate.id,
        "title": debate.title,
        "description": debate.description,
        "category": debate.category,
        "tags": debate.tags,
        "author_nickname": debate.author_nickname,
        "status": debate.status,
        "start_at": debate.start_at,
        "end_at": debate.end_at,
        "total_votes": debate.stats.total_votes,
        "opinion_count": debate.stats.opinion_count,
        "view_count": debate.stats.view_count,
        "time_remaining_seconds": debate.time_remaining_seconds(now),
        "created_at": debate.created_at,
    }


def debate_to_summary(debate: DebateDocument, now: Optional[datetime] = None) -> DebateSummary:
    return DebateSummary(**_summary_fields(debate, now or utcnow()))


def opinion_to_schema(opinion: Opinion) -> OpinionView:
    """Anonymous authors are shown as 'Anonymous'."""
    return OpinionView(
        id=opinion.id,
        author_nickname=opinion.display_nickname,
        selected_option_id=opinion.selected_option_id,
        content=opinion.content,
        is_anonymous=opinion.is_anonymous,
        created_at=opinion.created_at,
    )


def results_to_schema(results: Optional[dict[str, Any]]) -> Optional[DebateResults]:
    if results is None:
        return None
    return DebateResults(
        options=[DebateOptionView(**option) for option in results["options"]],
        total_votes=results["total_votes"],
        unique_voters=results["unique_voters"],
    )


def debate_to_detail(debate: DebateDocument, can_vote: bool, now: Optional[datetime] = None) -> DebateDetail:
    """Public debate page. Tallies are only included while results are visible."""
    now = now or utcnow()
    results = debate.get_results(now=now)
    visible = results is not None

    return DebateDetail(
        **_summary_fields(debate, now),
        options=[
            DebateOptionView(
                id=option.id,
                label=option.label,
                order=option.order,
                vote_count=option.vote_count if visible else None,
                percentage=option.percentage if visible else None,
            )
            for option in sorted(debate.options, key=lambda option: option.order)
        ],
        settings=DebateSettingsIn(**debate.settings.model_dump()),
        unique_voters=debate.stats.unique_voters,
        can_vote=can_vote,
        results=results_to_schema(results),
        opinions=[opinion_to_schema(opinion) for opinion in debate.visible_opinions()],
        is_hidden=debate.is_hidden,
    )


# ============================================================================
# Surveys
# ============================================================================


def _survey_summary_fields(survey: SurveyDocument) -> dict[str, Any]:
    return {
        "id": survey.id,
        "title": survey.title,
        "description": survey.description,
        "author_nickname": survey.author_nickname,
        "tags": survey.tags,
        "status": survey.status,
        "question_count": len(survey.questions),
        "response_count": survey.stats.response_count,
        "close_at": survey.settings.close_at,
        "created_at": survey.created_at,
    }


def survey_to_summary(survey: SurveyDocument) -> SurveySummary:
    return SurveySummary(**_survey_summary_fields(survey))


def _survey_public_fields(survey: SurveyDocument, now: datetime) -> dict[str, Any]:
    return {
        **_survey_summary_fields(survey),
        "questions": survey.ordered_questions(),
        "welcome_screen": survey.welcome_screen,
        "thankyou_screen": survey.thankyou_screen,
        "settings": survey.settings,
        "view_count": survey.stats.view_count,
        "is_closed": survey.is_closed(now),
    }


def survey_to_public(
    survey: SurveyDocument,
    can_respond: bool,
    has_responded: bool,
    now: Optional[datetime] = None,
) -> SurveyPublic:
    return SurveyPublic(
        **_survey_public_fields(survey, now or utcnow()),
        can_respond=can_respond,
        has_responded=has_responded,
    )


def survey_to_admin(survey: SurveyDocument, now: Optional[datetime] = None) -> SurveyAdminView:
    now = now or utcnow()
    return SurveyAdminView(
        **_survey_public_fields(survey, now),
        can_respond=survey.can_receive_response(now),
        is_hidden=survey.is_hidden,
        is_editable=survey.is_editable,
        can_edit=survey.can_edit(),
        first_response_at=survey.first_response_at,
        completion_rate=survey.stats.completion_rate,
        avg_completion_time=survey.stats.avg_completion_time,
        last_response_at=survey.stats.last_response_at,
        updated_at=survey.updated_at,
    )


def response_to_receipt(response: ResponseDocument, survey: SurveyDocument) -> ResponseReceipt:
    """The respondent's own answers, rendered with question titles and choice labels."""
    answers = []
    for question in survey.ordered_questions():
        answer = response.get_answer(question.id)
        if answer is None:
            continue
        answers.append(
            ReceiptAnswer(
                question_id=question.id,
                question_title=question.title,
                value=answer_cell(question, answer),
            )
        )
    return ResponseReceipt(
        response_code=response.response_code,
        survey_id=survey.id,
        survey_title=survey.title,
        submitted_at=response.submitted_at,
        answers=answers,
    )
