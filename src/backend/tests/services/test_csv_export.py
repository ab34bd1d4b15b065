"""
Tests for CSV export of survey responses.
"""

import csv
import io
from datetime import datetime, timezone

import pytest

from conftest import build_survey, choice_question
from models.response import Answer, DeletedBy, ResponseDocument
from models.survey import Question
from services.csv_export import BOM, export_filename, generate_csv

SUBMITTED = datetime(2024, 3, 1, 9, 30, 15, tzinfo=timezone.utc)


def make_survey():
    return build_survey(
        [
            choice_question("q1"),
            choice_question("q2", multiple=True),
            Question(id="t1", title="Comments", type="long_text", order=2),
            Question(id="r1", title="Score", type="rating", order=3),
        ]
    )


def make_response(**fields) -> ResponseDocument:
    return ResponseDocument(
        survey_id="s1",
        response_code="ABCD1234",
        respondent_ip_hash="secret-ip-hash",
        started_at=SUBMITTED,
        submitted_at=SUBMITTED,
        completion_time=42,
        browser="Firefox",
        device_type="desktop",
        answers=[
            Answer(question_id="q1", question_type="single_choice", choice_id="c2"),
            Answer(question_id="q2", question_type="multiple_choice", choice_ids=["c1", "c3"]),
            Answer(question_id="t1", question_type="long_text", text='Said "hi",\nthen left'),
            Answer(question_id="r1", question_type="rating", rating=4),
        ],
        **fields,
    )


def parse(content: str) -> list[list[str]]:
    assert content.startswith(BOM)
    return list(csv.reader(io.StringIO(content[len(BOM) :])))


@pytest.mark.unit
class TestGenerateCsv:
    def test_header_and_row(self):
        rows = parse(generate_csv(make_survey(), [make_response()]))

        assert rows[0] == [
            "Response Code",
            "Submitted At",
            "Completion Time (s)",
            "Device",
            "Browser",
            "Question q1",
            "Question q2",
            "Comments",
            "Score",
        ]
        assert rows[1] == [
            "ABCD1234",
            "2024-03-01 09:30:15",
            "42",
            "desktop",
            "Firefox",
            "No",
            "Yes, Maybe",
            'Said "hi",\nthen left',
            "4",
        ]

    def test_quotes_fields_with_commas_quotes_and_newlines(self):
        content = generate_csv(make_survey(), [make_response()])
        assert '"Said ""hi"",\nthen left"' in content
        assert '"Yes, Maybe"' in content

    def test_metadata_columns(self):
        response = make_response(quality_score=50, quality_flags=["too_fast", "all_same_answers"])
        rows = parse(generate_csv(make_survey(), [response], include_metadata=True))
        assert rows[0][5:8] == ["Quality Score", "Quality Flags", "Deleted"]
        assert rows[1][5:8] == ["50", "too_fast, all_same_answers", "no"]

    def test_deleted_marker(self):
        response = make_response()
        response.soft_delete(DeletedBy.ADMIN)
        rows = parse(generate_csv(make_survey(), [response], include_metadata=True))
        assert rows[1][7] == "yes"

    def test_never_contains_respondent_identifiers(self):
        content = generate_csv(make_survey(), [make_response()], include_metadata=True)
        assert "secret-ip-hash" not in content

    def test_unanswered_questions_are_blank(self):
        response = make_response()
        response.answers = response.answers[:1]
        rows = parse(generate_csv(make_survey(), [response]))
        assert rows[1][6:] == ["", "", ""]

    def test_filename(self):
        survey = make_survey()
        assert export_filename(survey, SUBMITTED) == f"survey_{survey.id}_responses_2024-03-01.csv"
