"""
Read-time statistics for surveys and debates.

Everything here is a pure projection over already-loaded documents; nothing
is written back. Hours and days are bucketed in UTC.

Choice percentages use the number of respondents who answered that question
as the denominator, so a multi-select question's percentages can sum past 100.
"""

import math
import re
from collections import Counter
from typing import Any, Iterable, Optional

from core.rounding import percentage, round_half_up
from models.base import as_utc
from models.debate import DebateDocument
from models.response import Answer, ResponseDocument
from models.survey import CHOICE_TYPES, TEXT_TYPES, Question, QuestionType, SurveyDocument

TOP_WORDS = 20
MIN_WORD_LENGTH = 3
SECONDS_PER_DAY = 24 * 60 * 60

_WORD_SPLIT = re.compile(r"\s+")


# ============================================================================
# Small numeric helpers
# ============================================================================


def median(values: list[float]) -> Optional[float]:
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def mode(values: list[Any]) -> Optional[Any]:
    """Most frequent value; on a tie, the one that reached the top count first."""
    counts: Counter = Counter()
    best, best_count = None, 0
    for value in values:
        counts[value] += 1
        if counts[value] > best_count:
            best, best_count = value, counts[value]
    return best


def hour_histogram(timestamps: Iterable) -> list[int]:
    hours = [0] * 24
    for ts in timestamps:
        hours[as_utc(ts).hour] += 1
    return hours


def day_histogram(timestamps: Iterable) -> dict[str, int]:
    days: Counter = Counter()
    for ts in timestamps:
        days[as_utc(ts).date().isoformat()] += 1
    return dict(sorted(days.items()))


def peak_hours(by_hour: list[int]) -> list[str]:
    top = max(by_hour) if by_hour else 0
    if top == 0:
        return []
    return [f"{hour}:00-{hour + 1}:00" for hour, count in enumerate(by_hour) if count == top]


# ============================================================================
# Per-question statistics
# ============================================================================


def choice_stats(question: Question, answers: list[Answer]) -> dict[str, Any]:
    counts = {choice.id: 0 for choice in question.properties.choices}
    for answer in answers:
        for choice_id in answer.selected:
            if choice_id in counts:
                counts[choice_id] += 1

    respondents = len(answers)
    choices = {
        choice.id: {
            "label": choice.label,
            "count": counts[choice.id],
            "percentage": percentage(counts[choice.id], respondents),
        }
        for choice in question.properties.choices
    }

    most_selected = None
    for choice_id, data in choices.items():
        if data["count"] > (most_selected["count"] if most_selected else 0):
            most_selected = {"id": choice_id, **data}

    return {"type": "choice", "choices": choices, "most_selected": most_selected}


def rating_stats(question: Question, answers: list[Answer]) -> dict[str, Any]:
    ratings = [answer.rating for answer in answers if answer.rating is not None]
    scale = question.properties.rating_scale or 5
    if not ratings:
        return {"type": "rating", "average": 0, "median": None, "mode": None, "distribution": {}}

    counts = Counter(ratings)
    distribution = {
        str(value): {"count": counts[value], "percentage": percentage(counts[value], len(ratings))}
        for value in range(1, scale + 1)
    }
    return {
        "type": "rating",
        "average": round_half_up(sum(ratings) / len(ratings), 1),
        "median": median(ratings),
        "mode": mode(ratings),
        "distribution": distribution,
    }


def text_stats(answers: list[Answer]) -> dict[str, Any]:
    texts = [answer.text for answer in answers if answer.text]
    if not texts:
        return {"type": "text", "response_count": 0, "avg_length": 0, "word_cloud": []}

    words: Counter = Counter()
    for text in texts:
        for word in _WORD_SPLIT.split(text.lower()):
            if len(word) >= MIN_WORD_LENGTH:
                words[word] += 1

    return {
        "type": "text",
        "response_count": len(texts),
        "avg_length": int(round_half_up(sum(len(text) for text in texts) / len(texts))),
        "word_cloud": [{"word": word, "count": count} for word, count in words.most_common(TOP_WORDS)],
    }


def question_stats(question: Question, answers: list[Answer]) -> dict[str, Any]:
    if question.type in CHOICE_TYPES:
        return choice_stats(question, answers)
    if question.type == QuestionType.RATING:
        return rating_stats(question, answers)
    if question.type in TEXT_TYPES:
        return text_stats(answers)
    return {}


# ============================================================================
# Survey statistics
# ============================================================================


def response_rate_per_day(responses: list[ResponseDocument]) -> float:
    if not responses:
        return 0
    created = sorted(as_utc(response.created_at) for response in responses)
    span = (created[-1] - created[0]).total_seconds()
    days = max(1, math.ceil(span / SECONDS_PER_DAY))
    return round_half_up(len(responses) / days, 1)


def average_quality_score(responses: list[ResponseDocument]) -> int:
    if not responses:
        return 0
    return int(round_half_up(sum(response.quality_score for response in responses) / len(responses)))


def _answers_for(question: Question, responses: list[ResponseDocument]) -> list[Answer]:
    answers = []
    for response in responses:
        answer = response.get_answer(question.id)
        if answer is not None:
            answers.append(answer)
    return answers


def generate_survey_statistics(survey: SurveyDocument, responses: list[ResponseDocument]) -> dict[str, Any]:
    """
    Full admin statistics over the given (live, complete) responses.
    """
    by_hour = hour_histogram(response.created_at for response in responses)

    questions = {}
    for question in survey.ordered_questions():
        answers = _answers_for(question, responses)
        questions[question.id] = {
            "title": question.title,
            "type": question.type,
            "response_count": len(answers),
            "stats": question_stats(question, answers),
        }

    return {
        "overview": {
            "total_responses": len(responses),
            "completion_rate": survey.stats.completion_rate,
            "avg_completion_time": survey.stats.avg_completion_time,
            "response_rate_per_day": response_rate_per_day(responses),
            "quality_score_avg": average_quality_score(responses),
        },
        "questions": questions,
        "time_analysis": {
            "by_hour": by_hour,
            "by_day": day_histogram(response.created_at for response in responses),
            "peak_times": peak_hours(by_hour),
        },
        "device_analysis": {
            "device_types": dict(Counter(response.device_type or "unknown" for response in responses)),
            "browsers": dict(Counter(response.browser or "unknown" for response in responses)),
        },
    }


def generate_public_results(survey: SurveyDocument, responses: list[ResponseDocument]) -> dict[str, Any]:
    """
    Public summary: counts per choice and rating averages, no free text.
    """
    question_results = {}
    for question in survey.ordered_questions():
        answers = _answers_for(question, responses)
        entry: dict[str, Any] = {
            "title": question.title,
            "type": question.type,
            "response_count": len(answers),
        }
        if question.type in CHOICE_TYPES:
            entry.update(choice_stats(question, answers))
        elif question.type == QuestionType.RATING:
            stats = rating_stats(question, answers)
            entry["average"] = stats["average"]
            entry["distribution"] = stats["distribution"]
        question_results[question.id] = entry

    return {
        "total_responses": len(responses),
        "completion_rate": survey.stats.completion_rate,
        "question_stats": question_results,
    }


# ============================================================================
# Debate statistics
# ============================================================================


def generate_debate_statistics(debate: DebateDocument) -> dict[str, Any]:
    """Admin statistics for a debate: overview, per-option split, timing."""
    vote_times = [vote.voted_at for option in debate.options for vote in option.votes]

    option_stats = []
    for option in debate.options:
        anonymous = sum(1 for vote in option.votes if vote.is_anonymous)
        option_stats.append(
            {
                "id": option.id,
                "label": option.label,
                "vote_count": option.vote_count,
                "percentage": option.percentage,
                "anonymous_votes": anonymous,
                "identified_votes": len(option.votes) - anonymous,
            }
        )

    stats = debate.stats
    return {
        "overview": {
            "total_votes": stats.total_votes,
            "unique_voters": stats.unique_voters,
            "opinion_count": stats.opinion_count,
            "view_count": stats.view_count,
            "participation_rate": percentage(stats.unique_voters, stats.view_count),
        },
        "option_stats": option_stats,
        "time_analysis": {
            "votes_by_hour": hour_histogram(vote_times),
            "votes_by_day": day_histogram(vote_times),
        },
        "voter_analysis": {
            "unique_voters": len(debate.voter_ips),
            "multiple_voters": sum(1 for voter in debate.voter_ips if voter.vote_count > 1),
        },
    }
