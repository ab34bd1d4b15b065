"""
Public response receipt endpoint.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from api.deps import get_survey_service
from schemas.converters import response_to_receipt
from schemas.response import ResponseReceipt
from services.survey_service import SurveyService

router = APIRouter()


@router.get("/code/{code}", response_model=ResponseReceipt)
async def get_response_by_code(
    service: Annotated[SurveyService, Depends(get_survey_service)],
    code: str = Path(..., min_length=8, max_length=8, pattern="^[0-9A-Fa-f]{8}$"),
) -> ResponseReceipt:
    """Look up a submitted response by the code shown to the respondent."""
    response, survey = await service.get_response_by_code(code)
    return response_to_receipt(response, survey)
