"""
CSV export of survey responses.

One row per response, one column per question (in survey order). Cells
resolve choice ids to their labels. Respondent identifiers never appear.
The output starts with a UTF-8 BOM so spreadsheet software detects the
encoding.
"""

import csv
import io
from datetime import datetime
from typing import Any, Optional

from models.base import as_utc
from models.response import Answer, ResponseDocument
from models.survey import Question, QuestionType, SurveyDocument

BOM = "\ufeff"

BASE_HEADERS = ["Response Code", "Submitted At", "Completion Time (s)", "Device", "Browser"]
METADATA_HEADERS = ["Quality Score", "Quality Flags", "Deleted"]


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return as_utc(value).strftime("%Y-%m-%d %H:%M:%S")


def answer_cell(question: Question, answer: Optional[Answer]) -> str:
    """Render one answer for a spreadsheet cell."""
    if answer is None:
        return ""
    if question.type == QuestionType.SINGLE_CHOICE:
        return question.choice_label(answer.choice_id) or answer.choice_id or ""
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return ", ".join(question.choice_label(choice_id) or choice_id for choice_id in answer.choice_ids)
    if question.type in (QuestionType.SHORT_TEXT, QuestionType.LONG_TEXT):
        return answer.text or ""
    if question.type == QuestionType.RATING:
        return str(answer.rating) if answer.rating is not None else ""
    return ""


def build_rows(
    survey: SurveyDocument,
    responses: list[ResponseDocument],
    include_metadata: bool = False,
) -> list[list[Any]]:
    questions = survey.ordered_questions()
    header = list(BASE_HEADERS)
    if include_metadata:
        header.extend(METADATA_HEADERS)
    header.extend(question.title for question in questions)

    rows = [header]
    for response in responses:
        row: list[Any] = [
            response.response_code,
            format_timestamp(response.submitted_at),
            response.completion_time,
            response.device_type or "unknown",
            response.browser or "unknown",
        ]
        if include_metadata:
            row.extend(
                [
                    response.quality_score,
                    ", ".join(str(flag) for flag in response.quality_flags),
                    "yes" if response.is_deleted else "no",
                ]
            )
        row.extend(answer_cell(question, response.get_answer(question.id)) for question in questions)
        rows.append(row)
    return rows


def generate_csv(
    survey: SurveyDocument,
    responses: list[ResponseDocument],
    include_metadata: bool = False,
) -> str:
    """Render responses as CSV text (BOM-prefixed, minimal quoting)."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(build_rows(survey, responses, include_metadata))
    return BOM + buffer.getvalue()


def export_filename(survey: SurveyDocument, now: datetime) -> str:
    return f"survey_{survey.id}_responses_{as_utc(now).date().isoformat()}.csv"
