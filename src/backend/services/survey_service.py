"""
Survey service.

Orchestrates the survey aggregate and its separately stored responses:
creation, public reads, response intake, admin moderation, statistics and
CSV export.

Response intake stores the response first and then folds it into the
survey's counters. If the survey update cannot be applied, the response is
soft-deleted again (deleted_by=system) so no submission is half-recorded.
"""

from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

import structlog

from core.exceptions import (
    ConflictError,
    ForbiddenError,
    IneligibleError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from core.rounding import round_half_up
from core.security import hash_ip
from core.user_agent import parse_user_agent
from models.base import AdminCredential, as_utc, utcnow
from models.response import DeletedBy, ResponseDocument
from models.survey import (
    Question,
    SurveyDocument,
    SurveySettings,
    SurveyStatus,
    ThankYouScreen,
    WelcomeScreen,
)
from repositories.provider import ResponseRepositoryProtocol, SurveyRepositoryProtocol
from services.answer_validator import SubmittedAnswer, validate_answers
from services.concurrency import update_with_retry
from services.csv_export import export_filename, generate_csv
from services.quality_checker import score_response
from services.statistics_service import generate_public_results, generate_survey_statistics

logger = structlog.get_logger(__name__)

ResultT = TypeVar("ResultT")

# Fields an admin may change through PATCH /settings
MUTABLE_SETTINGS = {
    "response_limit",
    "close_at",
    "show_progress_bar",
    "show_question_number",
    "allow_back_navigation",
    "autosave_progress",
    "language",
}

# Statuses an admin may set directly
SETTABLE_STATUSES = {SurveyStatus.OPEN.value, SurveyStatus.CLOSED.value}


class SurveyService:
    """Service for surveys and their responses."""

    def __init__(self, surveys: SurveyRepositoryProtocol, responses: ResponseRepositoryProtocol):
        self.surveys = surveys
        self.responses = responses

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _load(self, survey_id: str) -> SurveyDocument:
        survey = await self.surveys.get_by_id(survey_id)
        if survey is None or survey.is_deleted:
            raise NotFoundError("Survey not found")
        return survey

    async def _update(
        self,
        survey_id: str,
        mutate: Callable[[SurveyDocument], ResultT],
    ) -> tuple[SurveyDocument, ResultT]:
        return await update_with_retry(
            load=lambda: self._load(survey_id),
            mutate=mutate,
            save=self.surveys.replace,
        )

    async def _load_response(self, survey_id: str, response_id: str) -> ResponseDocument:
        response = await self.responses.get_by_id(survey_id, response_id)
        if response is None or response.is_deleted:
            raise NotFoundError("Response not found")
        return response

    async def _remove_response(self, survey_id: str, response: ResponseDocument, deleted_by: DeletedBy) -> None:
        """Soft-delete a response and take it out of the survey's counters."""
        now = utcnow()
        response.soft_delete(deleted_by, now)
        await self.responses.replace(response)

        live, complete, avg = await self.responses.completion_summary(survey_id)

        def forget(survey: SurveyDocument) -> None:
            survey.record_response_removed(now)
            survey.refresh_completion_stats(live, complete, avg)

        await self._update(survey_id, forget)

    # ========================================================================
    # Public operations
    # ========================================================================

    async def create_survey(
        self,
        title: str,
        questions: list[Question],
        admin_password: str,
        ip_hash: str,
        description: Optional[str] = None,
        author_nickname: Optional[str] = None,
        tags: Optional[list[str]] = None,
        welcome_screen: Optional[WelcomeScreen] = None,
        thankyou_screen: Optional[ThankYouScreen] = None,
        settings: Optional[SurveySettings] = None,
    ) -> tuple[SurveyDocument, str]:
        """
        Create a survey and open an admin session for its creator.

        Returns:
            (survey, admin token)
        """
        if not questions:
            raise InvalidInputError("At least one question is required", field="questions")

        now = utcnow()
        for index, question in enumerate(questions):
            if not question.order:
                question.order = index

        survey = SurveyDocument(
            title=title,
            description=description,
            author_nickname=author_nickname,
            tags=tags or [],
            creator_ip_hash=ip_hash,
            admin=AdminCredential.from_password(admin_password),
            questions=questions,
            welcome_screen=welcome_screen or WelcomeScreen(),
            thankyou_screen=thankyou_screen or ThankYouScreen(),
            settings=settings or SurveySettings(),
            created_at=now,
            updated_at=now,
        )
        token = survey.admin.issue_token(now)

        created = await self.surveys.create(survey)
        logger.info("survey_created", survey_id=created.id, questions=len(questions))
        return created, token

    async def list_surveys(
        self,
        page: int = 1,
        per_page: int = 20,
        tag: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "latest",
    ) -> tuple[list[SurveyDocument], int]:
        """Public listing of open surveys."""
        return await self.surveys.list_surveys(
            page=page,
            per_page=per_page,
            status=SurveyStatus.OPEN.value,
            tag=tag,
            search=search,
            sort=sort,
        )

    async def get_survey(self, survey_id: str, ip_hash: str) -> tuple[SurveyDocument, bool, bool]:
        """
        Public read. Counts the view.

        Returns:
            (survey, can_respond, has_responded)
        """
        survey, _ = await self._update(survey_id, lambda survey: survey.record_view())
        existing = await self.responses.get_live_by_respondent(survey_id, ip_hash)
        has_responded = existing is not None
        can_respond = survey.can_receive_response(utcnow()) and not has_responded
        return survey, can_respond, has_responded

    async def submit_response(
        self,
        survey_id: str,
        answers: list[SubmittedAnswer],
        started_at: datetime,
        ip_hash: str,
        time_tracking: Optional[dict[str, float]] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
        utm: Optional[dict[str, Optional[str]]] = None,
    ) -> ResponseDocument:
        """
        Validate, score and store one response.

        Raises:
            NotFoundError: Unknown or deleted survey
            IneligibleError: Survey not accepting responses
            ConflictError: Respondent already has a live response
            InvalidInputError: An answer failed validation
        """
        now = utcnow()
        survey = await self._load(survey_id)
        if not survey.can_receive_response(now):
            raise IneligibleError("This survey is closed")

        existing = await self.responses.get_live_by_respondent(survey_id, ip_hash)
        if existing is not None:
            raise ConflictError("You have already responded to this survey", response_code=existing.response_code)

        validated = validate_answers(survey, answers, now, time_tracking)
        completion_time = max(0, int(round_half_up((now - as_utc(started_at)).total_seconds())))
        assessment = score_response(validated, completion_time)
        browser, device_type = parse_user_agent(user_agent)
        utm = utm or {}

        response = ResponseDocument(
            survey_id=survey_id,
            respondent_ip_hash=ip_hash,
            user_agent=user_agent,
            browser=browser,
            device_type=device_type,
            referrer=referrer,
            utm_source=utm.get("source"),
            utm_medium=utm.get("medium"),
            utm_campaign=utm.get("campaign"),
            answers=validated,
            started_at=started_at,
            submitted_at=now,
            completion_time=completion_time,
            is_complete=True,
            quality_score=assessment.quality_score,
            quality_flags=assessment.quality_flags,
            created_at=now,
        )

        try:
            stored = await self.responses.create(response)
        except ConflictError as e:
            # Lost the race to another submission from the same respondent
            winner = await self.responses.get_live_by_respondent(survey_id, ip_hash)
            raise ConflictError(
                "You have already responded to this survey",
                response_code=winner.response_code if winner else None,
            ) from e

        try:
            live, complete, avg = await self.responses.completion_summary(survey_id)

            def record(survey: SurveyDocument) -> None:
                # Another submission may have filled the last slot meanwhile
                if not survey.can_receive_response(now):
                    raise IneligibleError("This survey is closed")
                survey.record_response(now, live, complete, avg)

            await self._update(survey_id, record)
        except Exception:
            # A response the counters never saw must not stay live
            stored.soft_delete(DeletedBy.SYSTEM, utcnow())
            await self.responses.replace(stored)
            logger.warning("survey_response_rolled_back", survey_id=survey_id, response_id=stored.id)
            raise

        logger.info(
            "survey_response_submitted",
            survey_id=survey_id,
            response_id=stored.id,
            quality_score=stored.quality_score,
        )
        return stored

    async def get_public_results(self, survey_id: str) -> dict[str, Any]:
        survey = await self._load(survey_id)
        responses = await self.responses.list_for_survey(survey_id)
        return {"survey_id": survey.id, "title": survey.title, **generate_public_results(survey, responses)}

    async def get_response_by_code(self, code: str) -> tuple[ResponseDocument, SurveyDocument]:
        """Public receipt lookup."""
        response = await self.responses.get_by_code(code)
        if response is None:
            raise NotFoundError("Response not found")
        survey = await self._load(response.survey_id)
        return response, survey

    # ========================================================================
    # Admin operations
    # ========================================================================

    async def admin_login(self, survey_id: str, password: str) -> tuple[str, datetime]:
        now = utcnow()

        def login(survey: SurveyDocument) -> str:
            if not survey.admin.check_password(password):
                raise UnauthorizedError("Invalid password")
            return survey.admin.issue_token(now)

        survey, token = await self._update(survey_id, login)
        logger.info("survey_admin_login", survey_id=survey_id)
        return token, survey.admin.token_expires_at

    async def authenticate_admin(self, survey_id: str, token: str) -> SurveyDocument:
        """
        Check an admin token and slide its expiry forward.

        Raises:
            UnauthorizedError: Missing, wrong or expired token
        """
        now = utcnow()

        def check(survey: SurveyDocument) -> None:
            if not token or not survey.admin.token_valid(token, now):
                raise UnauthorizedError("Invalid or expired admin token")
            survey.admin.refresh(now)

        survey, _ = await self._update(survey_id, check)
        return survey

    async def update_survey(self, survey_id: str, updates: dict[str, Any]) -> SurveyDocument:
        """
        Apply an admin edit.

        Raises:
            ForbiddenError: Questions changed after the first response
        """
        now = utcnow()

        def edit(survey: SurveyDocument) -> None:
            if updates.get("questions") is not None:
                if not survey.can_edit():
                    raise ForbiddenError("Questions cannot be changed after responses have been received")
                questions = updates["questions"]
                if not questions:
                    raise InvalidInputError("At least one question is required", field="questions")
                survey.questions = questions
            for field in ("title", "description", "tags", "welcome_screen", "thankyou_screen", "is_hidden"):
                if updates.get(field) is not None:
                    setattr(survey, field, updates[field])
            survey.updated_at = now

        survey, _ = await self._update(survey_id, edit)
        logger.info("survey_updated", survey_id=survey_id)
        return survey

    async def set_status(self, survey_id: str, status: str) -> SurveyDocument:
        if status not in SETTABLE_STATUSES:
            raise InvalidInputError("Status must be 'open' or 'closed'", field="status")
        now = utcnow()

        def change(survey: SurveyDocument) -> None:
            survey.status = status
            survey.updated_at = now

        survey, _ = await self._update(survey_id, change)
        logger.info("survey_status_changed", survey_id=survey_id, status=status)
        return survey

    async def update_settings(self, survey_id: str, changes: dict[str, Any]) -> SurveyDocument:
        unknown = set(changes) - MUTABLE_SETTINGS
        if unknown:
            raise InvalidInputError(f"Unknown settings: {', '.join(sorted(unknown))}", field="settings")
        now = utcnow()

        def change(survey: SurveyDocument) -> None:
            merged = survey.settings.model_dump()
            merged.update(changes)
            survey.settings = SurveySettings.model_validate(merged)
            survey.updated_at = now

        survey, _ = await self._update(survey_id, change)
        return survey

    async def delete_survey(self, survey_id: str) -> None:
        now = utcnow()
        await self._update(survey_id, lambda survey: survey.soft_delete(now))
        logger.info("survey_deleted", survey_id=survey_id)

    async def get_statistics(self, survey: SurveyDocument) -> dict[str, Any]:
        responses = await self.responses.list_for_survey(survey.id)
        return generate_survey_statistics(survey, responses)

    async def list_responses(
        self,
        survey_id: str,
        page: int = 1,
        per_page: int = 20,
        sort: str = "-created_at",
        quality_score_min: int = 0,
    ) -> tuple[list[ResponseDocument], int]:
        return await self.responses.list_page(
            survey_id,
            page=page,
            per_page=per_page,
            sort=sort,
            quality_score_min=quality_score_min,
        )

    async def get_response(self, survey_id: str, response_id: str) -> ResponseDocument:
        return await self._load_response(survey_id, response_id)

    async def delete_response(self, survey_id: str, response_id: str) -> None:
        response = await self._load_response(survey_id, response_id)
        await self._remove_response(survey_id, response, DeletedBy.ADMIN)
        logger.info("survey_response_deleted", survey_id=survey_id, response_id=response_id)

    async def unlock_ip(self, survey_id: str, ip_address: str) -> bool:
        """
        Let an address respond again by removing its live response.

        Returns:
            True if a response was removed
        """
        response = await self.responses.get_live_by_respondent(survey_id, hash_ip(ip_address))
        if response is None:
            return False
        await self._remove_response(survey_id, response, DeletedBy.ADMIN)
        logger.info("survey_respondent_unlocked", survey_id=survey_id, response_id=response.id)
        return True

    async def export_csv(
        self,
        survey: SurveyDocument,
        include_metadata: bool = False,
        include_deleted: bool = False,
    ) -> tuple[str, str]:
        """
        Returns:
            (filename, CSV text)
        """
        responses = await self.responses.list_for_survey(survey.id, include_deleted=include_deleted)
        logger.info("survey_exported", survey_id=survey.id, rows=len(responses))
        return export_filename(survey, utcnow()), generate_csv(survey, responses, include_metadata)
