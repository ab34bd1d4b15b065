"""
Survey endpoints.

Public:
- Create, list and read surveys
- Submit a response (one live response per respondent)
- Aggregate results (no free text)

Admin (Bearer token returned at creation or by POST /{survey_id}/admin/login):
- Edit, open/close, settings, delete
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Query, status

from api.deps import get_ip_hash, get_survey_service, require_survey_admin
from core.config import settings
from core.urls import response_url, survey_urls
from models.survey import SurveyDocument
from schemas.common import AdminLoginRequest, AdminTokenResponse, MessageResponse, Pagination
from schemas.converters import survey_to_admin, survey_to_public, survey_to_summary
from schemas.response import ResponseCreated, ResponseSubmit
from schemas.survey import (
    SurveyAdminView,
    SurveyCreate,
    SurveyCreated,
    SurveyListResponse,
    SurveyPublic,
    SurveyResults,
    SurveySettingsUpdate,
    SurveyStatusUpdate,
    SurveyUpdate,
)
from services.survey_service import SurveyService

router = APIRouter()

SurveyServiceDep = Annotated[SurveyService, Depends(get_survey_service)]
IpHashDep = Annotated[str, Depends(get_ip_hash)]
SurveyAdminDep = Annotated[SurveyDocument, Depends(require_survey_admin)]


# ============================================================================
# Public Endpoints
# ============================================================================


@router.post("", response_model=SurveyCreated, status_code=status.HTTP_201_CREATED)
async def create_survey(
    payload: SurveyCreate,
    service: SurveyServiceDep,
    ip_hash: IpHashDep,
) -> SurveyCreated:
    """Create a survey. The response carries an admin token for the creator."""
    survey, token = await service.create_survey(
        title=payload.title,
        questions=[question.to_model() for question in payload.questions],
        admin_password=payload.admin_password,
        ip_hash=ip_hash,
        description=payload.description,
        author_nickname=payload.author_nickname,
        tags=payload.tags,
        welcome_screen=payload.welcome_screen,
        thankyou_screen=payload.thankyou_screen,
        settings=payload.settings,
    )
    public_url, admin_url = survey_urls(survey.id)
    return SurveyCreated(
        id=survey.id,
        public_url=public_url,
        admin_url=admin_url,
        admin_token=token,
        token_expires_at=survey.admin.token_expires_at,
    )


@router.get("", response_model=SurveyListResponse)
async def list_surveys(
    service: SurveyServiceDep,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    tag: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, max_length=100),
    sort: str = Query("latest", pattern="^(latest|popular|closing)$"),
) -> SurveyListResponse:
    """List open, visible surveys."""
    surveys, total = await service.list_surveys(page=page, per_page=per_page, tag=tag, search=search, sort=sort)
    return SurveyListResponse(
        surveys=[survey_to_summary(survey) for survey in surveys],
        pagination=Pagination.build(page, per_page, total),
    )


@router.get("/{survey_id}", response_model=SurveyPublic)
async def get_survey(
    survey_id: str,
    service: SurveyServiceDep,
    ip_hash: IpHashDep,
) -> SurveyPublic:
    survey, can_respond, has_responded = await service.get_survey(survey_id, ip_hash)
    return survey_to_public(survey, can_respond=can_respond, has_responded=has_responded)


@router.post("/{survey_id}/responses", response_model=ResponseCreated, status_code=status.HTTP_201_CREATED)
async def submit_response(
    survey_id: str,
    payload: ResponseSubmit,
    service: SurveyServiceDep,
    ip_hash: IpHashDep,
    user_agent: Annotated[Optional[str], Header()] = None,
) -> ResponseCreated:
    """
    Submit a response.

    Answers to unknown questions are ignored. A second submission from the
    same respondent gets 409 with the code of the existing response.
    """
    response = await service.submit_response(
        survey_id,
        payload.answers,
        payload.started_at,
        ip_hash,
        time_tracking=payload.time_tracking,
        user_agent=user_agent,
        referrer=payload.referrer,
        utm=payload.utm,
    )
    return ResponseCreated(
        response_id=response.id,
        response_code=response.response_code,
        response_url=response_url(response.response_code),
        submitted_at=response.submitted_at,
    )


@router.get("/{survey_id}/results", response_model=SurveyResults)
async def get_survey_results(
    survey_id: str,
    service: SurveyServiceDep,
) -> SurveyResults:
    return SurveyResults(**await service.get_public_results(survey_id))


@router.post("/{survey_id}/admin/login", response_model=AdminTokenResponse)
async def admin_login(
    survey_id: str,
    payload: AdminLoginRequest,
    service: SurveyServiceDep,
) -> AdminTokenResponse:
    token, expires_at = await service.admin_login(survey_id, payload.password)
    return AdminTokenResponse(token=token, expires_at=expires_at)


# ============================================================================
# Admin Endpoints
# ============================================================================


@router.put("/{survey_id}", response_model=SurveyAdminView)
async def update_survey(
    survey_id: str,
    payload: SurveyUpdate,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> SurveyAdminView:
    """Edit a survey. Questions are locked once the first response arrives."""
    survey = await service.update_survey(admin_survey.id, payload.to_updates())
    return survey_to_admin(survey)


@router.patch("/{survey_id}/status", response_model=SurveyAdminView)
async def update_survey_status(
    survey_id: str,
    payload: SurveyStatusUpdate,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> SurveyAdminView:
    survey = await service.set_status(admin_survey.id, payload.status)
    return survey_to_admin(survey)


@router.patch("/{survey_id}/settings", response_model=SurveyAdminView)
async def update_survey_settings(
    survey_id: str,
    payload: SurveySettingsUpdate,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> SurveyAdminView:
    """Partial settings update; only the fields sent are changed."""
    survey = await service.update_settings(admin_survey.id, payload.model_dump(exclude_unset=True))
    return survey_to_admin(survey)


@router.delete("/{survey_id}", response_model=MessageResponse)
async def delete_survey(
    survey_id: str,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> MessageResponse:
    """Soft-delete and close a survey. Responses are kept."""
    await service.delete_survey(admin_survey.id)
    return MessageResponse(message="Survey deleted")
