"""
Survey admin endpoints.

Everything here requires the survey's admin token
(`Authorization: Bearer <token>`). Each authenticated request slides the
token's expiry forward. Responses are returned with respondent identifiers
removed.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from api.deps import get_survey_service, require_survey_admin
from core.config import settings
from models.survey import SurveyDocument
from schemas.common import MessageResponse, Pagination
from schemas.converters import survey_to_admin
from schemas.response import ResponseDetail, ResponseListResponse
from schemas.survey import SurveyAdminView, SurveyStatistics, UnlockIpRequest
from services.survey_service import SurveyService

router = APIRouter()

SurveyServiceDep = Annotated[SurveyService, Depends(get_survey_service)]
SurveyAdminDep = Annotated[SurveyDocument, Depends(require_survey_admin)]


@router.get("/{survey_id}", response_model=SurveyAdminView)
async def get_survey_admin_view(
    survey_id: str,
    admin_survey: SurveyAdminDep,
) -> SurveyAdminView:
    return survey_to_admin(admin_survey)


@router.get("/{survey_id}/statistics", response_model=SurveyStatistics)
async def get_survey_statistics(
    survey_id: str,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> SurveyStatistics:
    """Per-question breakdowns, timing, quality and device analysis."""
    statistics = await service.get_statistics(admin_survey)
    return SurveyStatistics(survey_id=admin_survey.id, statistics=statistics)


@router.get("/{survey_id}/responses", response_model=ResponseListResponse)
async def list_responses(
    survey_id: str,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    sort: str = Query("-created_at", pattern="^-?(created_at|completion_time)$"),
    quality_score_min: int = Query(0, ge=0, le=100),
) -> ResponseListResponse:
    responses, total = await service.list_responses(
        admin_survey.id,
        page=page,
        per_page=per_page,
        sort=sort,
        quality_score_min=quality_score_min,
    )
    return ResponseListResponse(
        responses=[response.anonymize() for response in responses],
        pagination=Pagination.build(page, per_page, total),
    )


@router.get("/{survey_id}/responses/{response_id}", response_model=ResponseDetail)
async def get_response(
    survey_id: str,
    response_id: str,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> ResponseDetail:
    response = await service.get_response(admin_survey.id, response_id)
    return ResponseDetail(response=response.anonymize())


@router.delete("/{survey_id}/responses/{response_id}", response_model=MessageResponse)
async def delete_response(
    survey_id: str,
    response_id: str,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> MessageResponse:
    """Soft-delete a response. The respondent may then submit again."""
    await service.delete_response(admin_survey.id, response_id)
    return MessageResponse(message="Response deleted")


@router.get("/{survey_id}/export/csv")
async def export_csv(
    survey_id: str,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
    include_metadata: bool = Query(False),
    include_deleted: bool = Query(False),
) -> Response:
    filename, content = await service.export_csv(
        admin_survey,
        include_metadata=include_metadata,
        include_deleted=include_deleted,
    )
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{survey_id}/unlock-ip", response_model=MessageResponse)
async def unlock_ip(
    survey_id: str,
    payload: UnlockIpRequest,
    admin_survey: SurveyAdminDep,
    service: SurveyServiceDep,
) -> MessageResponse:
    """Remove the live response from an address so it can respond again."""
    removed = await service.unlock_ip(admin_survey.id, payload.ip_address)
    message = "Respondent unlocked" if removed else "No response found for that address"
    return MessageResponse(message=message)
