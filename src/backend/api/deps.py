"""
Shared dependencies for API endpoints.

Includes:
- Client address resolution and pseudonymization
- Service construction from the configured repositories
- Per-debate / per-survey admin authentication (Bearer session token)
"""

from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.exceptions import UnauthorizedError
from core.security import hash_ip
from models.debate import DebateDocument
from models.survey import SurveyDocument
from repositories.provider import (
    DebateRepositoryProtocol,
    ResponseRepositoryProtocol,
    SurveyRepositoryProtocol,
    get_debate_repository,
    get_response_repository,
    get_survey_repository,
)
from services.debate_service import DebateService
from services.survey_service import SurveyService

logger = structlog.get_logger(__name__)

# Missing credentials are reported through UnauthorizedError, not FastAPI's 403
admin_bearer = HTTPBearer(auto_error=False)


# =============================================================================
# Client identity
# =============================================================================


def get_client_ip(request: Request) -> str:
    """
    Resolve the caller's address.

    First hop of X-Forwarded-For, then X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def get_ip_hash(client_ip: Annotated[str, Depends(get_client_ip)]) -> str:
    """Pseudonymous identifier of the caller. The raw address goes no further."""
    return hash_ip(client_ip)


# =============================================================================
# Services
# =============================================================================


async def get_debate_service(
    repo: Annotated[DebateRepositoryProtocol, Depends(get_debate_repository)],
) -> DebateService:
    return DebateService(repo)


async def get_survey_service(
    surveys: Annotated[SurveyRepositoryProtocol, Depends(get_survey_repository)],
    responses: Annotated[ResponseRepositoryProtocol, Depends(get_response_repository)],
) -> SurveyService:
    return SurveyService(surveys, responses)


# =============================================================================
# Admin authentication
# =============================================================================


def _bearer_token(credentials: HTTPAuthorizationCredentials | None) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Admin token required")
    return credentials.credentials


async def require_debate_admin(
    debate_id: str,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(admin_bearer)],
    service: Annotated[DebateService, Depends(get_debate_service)],
) -> DebateDocument:
    """
    Authenticate the admin of the debate in the path.

    Raises:
        UnauthorizedError: Missing, invalid or expired token
    """
    token = _bearer_token(credentials)
    try:
        return await service.authenticate_admin(debate_id, token)
    except UnauthorizedError:
        logger.warning("debate_admin_auth_failed", debate_id=debate_id)
        raise


async def require_survey_admin(
    survey_id: str,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(admin_bearer)],
    service: Annotated[SurveyService, Depends(get_survey_service)],
) -> SurveyDocument:
    """
    Authenticate the admin of the survey in the path.

    Raises:
        UnauthorizedError: Missing, invalid or expired token
    """
    token = _bearer_token(credentials)
    try:
        return await service.authenticate_admin(survey_id, token)
    except UnauthorizedError:
        logger.warning("survey_admin_auth_failed", survey_id=survey_id)
        raise
