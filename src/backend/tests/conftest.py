"""
Pytest fixtures for Surbate backend tests.
"""

import copy
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("IP_SALT", "test-salt")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")

from core.exceptions import ConcurrencyConflictError, ConflictError  # noqa: E402
from models.base import AdminCredential  # noqa: E402
from models.debate import DebateDocument, DebateOption, DebateSettings  # noqa: E402
from models.response import ResponseDocument  # noqa: E402
from models.survey import Choice, Question, QuestionProperties, SurveyDocument  # noqa: E402

ADMIN_PASSWORD = "hunter22"


# ============================================================================
# In-memory repositories (same contract as the Cosmos ones, etag included)
# ============================================================================


class _EtagStore:
    """Dict of JSON documents with Cosmos-like etag checks on replace."""

    def __init__(self) -> None:
        self.items: dict[str, dict[str, Any]] = {}
        self._version = 0
        self.replace_calls = 0

    def _stamp(self, data: dict[str, Any]) -> dict[str, Any]:
        self._version += 1
        data["_etag"] = f'"{self._version}"'
        return data

    def put_new(self, data: dict[str, Any]) -> dict[str, Any]:
        stored = self._stamp(copy.deepcopy(data))
        self.items[stored["id"]] = stored
        return copy.deepcopy(stored)

    def put_existing(self, data: dict[str, Any], etag: Optional[str]) -> dict[str, Any]:
        self.replace_calls += 1
        current = self.items[data["id"]]
        if etag is not None and current["_etag"] != etag:
            raise ConcurrencyConflictError("etag mismatch")
        return self.put_new(data)

    def get(self, item_id: str) -> Optional[dict[str, Any]]:
        data = self.items.get(item_id)
        return copy.deepcopy(data) if data is not None else None


class InMemoryDebateRepository:
    def __init__(self) -> None:
        self.store = _EtagStore()

    async def get_by_id(self, debate_id: str) -> Optional[DebateDocument]:
        data = self.store.get(debate_id)
        return DebateDocument.model_validate(data) if data else None

    async def list_debates(self, page: int = 1, per_page: int = 20, **filters: Any) -> tuple[list[DebateDocument], int]:
        debates = [
            DebateDocument.model_validate(copy.deepcopy(data))
            for data in self.store.items.values()
            if not data["is_deleted"] and not data["is_hidden"]
        ]
        if filters.get("category"):
            debates = [d for d in debates if d.category == filters["category"]]
        start = (page - 1) * per_page
        return debates[start : start + per_page], len(debates)

    async def create(self, debate: DebateDocument) -> DebateDocument:
        return DebateDocument.model_validate(self.store.put_new(debate.to_cosmos()))

    async def replace(self, debate: DebateDocument) -> DebateDocument:
        return DebateDocument.model_validate(self.store.put_existing(debate.to_cosmos(), debate.etag))


class InMemorySurveyRepository:
    def __init__(self) -> None:
        self.store = _EtagStore()

    async def get_by_id(self, survey_id: str) -> Optional[SurveyDocument]:
        data = self.store.get(survey_id)
        return SurveyDocument.model_validate(data) if data else None

    async def list_surveys(self, page: int = 1, per_page: int = 20, **filters: Any) -> tuple[list[SurveyDocument], int]:
        surveys = [
            SurveyDocument.model_validate(copy.deepcopy(data))
            for data in self.store.items.values()
            if not data["is_deleted"] and not data["is_hidden"]
        ]
        if filters.get("status"):
            surveys = [s for s in surveys if s.status == filters["status"]]
        start = (page - 1) * per_page
        return surveys[start : start + per_page], len(surveys)

    async def create(self, survey: SurveyDocument) -> SurveyDocument:
        return SurveyDocument.model_validate(self.store.put_new(survey.to_cosmos()))

    async def replace(self, survey: SurveyDocument) -> SurveyDocument:
        return SurveyDocument.model_validate(self.store.put_existing(survey.to_cosmos(), survey.etag))


class InMemoryResponseRepository:
    """Enforces one document per (survey_id, respondent_lock), like the container's unique key."""

    def __init__(self) -> None:
        self.store = _EtagStore()

    def _all(self, survey_id: str) -> list[ResponseDocument]:
        docs = [
            ResponseDocument.model_validate(copy.deepcopy(data))
            for data in self.store.items.values()
            if data["survey_id"] == survey_id
        ]
        return sorted(docs, key=lambda r: r.created_at)

    async def get_by_id(self, survey_id: str, response_id: str) -> Optional[ResponseDocument]:
        data = self.store.get(response_id)
        if data is None or data["survey_id"] != survey_id:
            return None
        return ResponseDocument.model_validate(data)

    async def get_live_by_respondent(self, survey_id: str, respondent_ip_hash: str) -> Optional[ResponseDocument]:
        for response in self._all(survey_id):
            if response.respondent_ip_hash == respondent_ip_hash and not response.is_deleted:
                return response
        return None

    async def get_by_code(self, response_code: str) -> Optional[ResponseDocument]:
        for data in self.store.items.values():
            if data["response_code"] == response_code.upper() and not data["is_deleted"]:
                return ResponseDocument.model_validate(copy.deepcopy(data))
        return None

    async def list_for_survey(
        self, survey_id: str, include_deleted: bool = False, complete_only: bool = False
    ) -> list[ResponseDocument]:
        responses = self._all(survey_id)
        if not include_deleted:
            responses = [r for r in responses if not r.is_deleted]
        if complete_only:
            responses = [r for r in responses if r.is_complete]
        return responses

    async def list_page(
        self,
        survey_id: str,
        page: int = 1,
        per_page: int = 20,
        sort: str = "-created_at",
        quality_score_min: int = 0,
    ) -> tuple[list[ResponseDocument], int]:
        responses = [r for r in await self.list_for_survey(survey_id) if r.quality_score >= quality_score_min]
        field = sort.lstrip("-")
        responses.sort(key=lambda r: getattr(r, field), reverse=sort.startswith("-"))
        start = (page - 1) * per_page
        return responses[start : start + per_page], len(responses)

    async def completion_summary(self, survey_id: str) -> tuple[int, int, Optional[float]]:
        live = await self.list_for_survey(survey_id)
        complete = [r for r in live if r.is_complete]
        avg = sum(r.completion_time for r in complete) / len(complete) if complete else None
        return len(live), len(complete), avg

    async def create(self, response: ResponseDocument) -> ResponseDocument:
        for data in self.store.items.values():
            if data["survey_id"] == response.survey_id and data["respondent_lock"] == response.respondent_lock:
                raise ConflictError("You have already responded to this survey")
        return ResponseDocument.model_validate(self.store.put_new(response.to_cosmos()))

    async def replace(self, response: ResponseDocument) -> ResponseDocument:
        return ResponseDocument.model_validate(self.store.put_existing(response.to_cosmos(), response.etag))


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def debate_repo() -> InMemoryDebateRepository:
    return InMemoryDebateRepository()


@pytest.fixture
def survey_repo() -> InMemorySurveyRepository:
    return InMemorySurveyRepository()


@pytest.fixture
def response_repo() -> InMemoryResponseRepository:
    return InMemoryResponseRepository()


def build_debate(now: datetime, settings: Optional[DebateSettings] = None, option_count: int = 2) -> DebateDocument:
    """An active debate with options 'a', 'b', ... ."""
    labels = ["Apples", "Bananas", "Cherries", "Dates"][:option_count]
    debate = DebateDocument(
        title="Best fruit?",
        author_nickname="host",
        author_ip_hash="creator-hash",
        admin=AdminCredential.from_password(ADMIN_PASSWORD),
        options=[DebateOption(id=chr(ord("a") + i), label=label, order=i) for i, label in enumerate(labels)],
        settings=settings or DebateSettings(),
        start_at=now - timedelta(hours=1),
        end_at=now + timedelta(hours=1),
    )
    debate.update_status(now)
    return debate


def build_survey(questions: list[Question], **fields: Any) -> SurveyDocument:
    return SurveyDocument(
        title="Team survey",
        creator_ip_hash="creator-hash",
        admin=AdminCredential.from_password(ADMIN_PASSWORD),
        questions=questions,
        **fields,
    )


def choice_question(qid: str = "q1", required: bool = True, multiple: bool = False, **props: Any) -> Question:
    return Question(
        id=qid,
        title=f"Question {qid}",
        type="multiple_choice" if multiple else "single_choice",
        required=required,
        properties=QuestionProperties(
            choices=[Choice(id="c1", label="Yes"), Choice(id="c2", label="No"), Choice(id="c3", label="Maybe")],
            **props,
        ),
    )


@pytest.fixture
async def app() -> Any:
    """Create FastAPI application for testing."""
    from main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(
    app: Any,
    debate_repo: InMemoryDebateRepository,
    survey_repo: InMemorySurveyRepository,
    response_repo: InMemoryResponseRepository,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the repositories swapped for in-memory ones."""
    from repositories.provider import get_debate_repository, get_response_repository, get_survey_repository

    app.dependency_overrides[get_debate_repository] = lambda: debate_repo
    app.dependency_overrides[get_survey_repository] = lambda: survey_repo
    app.dependency_overrides[get_response_repository] = lambda: response_repo

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"X-Forwarded-For": "203.0.113.7"},
    ) as ac:
        yield ac
