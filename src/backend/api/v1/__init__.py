"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.admin import router as admin_router
from api.v1.debates import router as debates_router
from api.v1.responses import router as responses_router
from api.v1.surveys import router as surveys_router

router = APIRouter()

router.include_router(debates_router, prefix="/debates", tags=["Debates"])
router.include_router(surveys_router, prefix="/surveys", tags=["Surveys"])
router.include_router(responses_router, prefix="/responses", tags=["Responses"])
router.include_router(admin_router, prefix="/admin/surveys", tags=["Survey Admin"])
