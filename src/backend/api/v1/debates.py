"""
Debate (poll) endpoints.

Public:
- Create, list and read debates
- Vote and post opinions (voters are identified by a salted hash of their address)

Admin (Bearer token from POST /{debate_id}/admin/login):
- Edit, delete (password re-checked), statistics, forced results, opinion moderation
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from api.deps import get_debate_service, get_ip_hash, require_debate_admin
from core.config import settings
from core.urls import debate_urls
from models.debate import ANONYMOUS_AUTHOR, DebateCategory, DebateDocument, DebateStatus
from schemas.common import AdminLoginRequest, AdminTokenResponse, MessageResponse, Pagination
from schemas.converters import debate_to_detail, debate_to_summary, opinion_to_schema, results_to_schema
from schemas.debate import (
    DebateCreate,
    DebateCreated,
    DebateDelete,
    DebateDetail,
    DebateListResponse,
    DebateResults,
    DebateUpdate,
    OpinionCreate,
    OpinionCreated,
    VoteRequest,
    VoteResult,
)
from services.debate_service import DebateService

router = APIRouter()

DebateServiceDep = Annotated[DebateService, Depends(get_debate_service)]
IpHashDep = Annotated[str, Depends(get_ip_hash)]
DebateAdminDep = Annotated[DebateDocument, Depends(require_debate_admin)]


# ============================================================================
# Public Endpoints
# ============================================================================


@router.post("", response_model=DebateCreated, status_code=status.HTTP_201_CREATED)
async def create_debate(
    payload: DebateCreate,
    service: DebateServiceDep,
    ip_hash: IpHashDep,
) -> DebateCreated:
    """Create a debate. Keep the admin password: it is the only way back in."""
    debate = await service.create_debate(
        title=payload.title,
        options=payload.options,
        start_at=payload.start_at,
        end_at=payload.end_at,
        admin_password=payload.admin_password,
        ip_hash=ip_hash,
        author_nickname=payload.author_nickname or ANONYMOUS_AUTHOR,
        description=payload.description,
        category=payload.category,
        tags=payload.tags,
        settings=payload.settings.to_model(),
    )
    public_url, admin_url = debate_urls(debate.id)
    return DebateCreated(id=debate.id, status=debate.status, public_url=public_url, admin_url=admin_url)


@router.get("", response_model=DebateListResponse)
async def list_debates(
    service: DebateServiceDep,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[DebateCategory] = None,
    status_filter: Optional[DebateStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    sort: str = Query("latest", pattern="^(latest|popular|views|ending_soon)$"),
) -> DebateListResponse:
    """List visible debates."""
    debates, total = await service.list_debates(
        page=page,
        per_page=per_page,
        category=category.value if category else None,
        status=status_filter.value if status_filter else None,
        search=search,
        sort=sort,
    )
    return DebateListResponse(
        debates=[debate_to_summary(debate) for debate in debates],
        pagination=Pagination.build(page, per_page, total),
    )


@router.get("/{debate_id}", response_model=DebateDetail)
async def get_debate(
    debate_id: str,
    service: DebateServiceDep,
    ip_hash: IpHashDep,
) -> DebateDetail:
    """Debate page: options, results while visible, and opinions newest first."""
    debate, can_vote = await service.get_debate(debate_id, ip_hash)
    return debate_to_detail(debate, can_vote)


@router.post("/{debate_id}/vote", response_model=VoteResult)
async def vote(
    debate_id: str,
    payload: VoteRequest,
    service: DebateServiceDep,
    ip_hash: IpHashDep,
) -> VoteResult:
    debate = await service.cast_vote(
        debate_id,
        payload.option_ids,
        ip_hash,
        nickname=payload.nickname,
        is_anonymous=payload.is_anonymous,
    )
    return VoteResult(
        results=results_to_schema(debate.get_results()),
        can_vote=debate.can_vote(ip_hash),
    )


@router.post("/{debate_id}/opinions", response_model=OpinionCreated, status_code=status.HTTP_201_CREATED)
async def add_opinion(
    debate_id: str,
    payload: OpinionCreate,
    service: DebateServiceDep,
    ip_hash: IpHashDep,
) -> OpinionCreated:
    opinion = await service.add_opinion(
        debate_id,
        payload.content,
        ip_hash,
        payload.nickname_or_default,
        selected_option_id=payload.selected_option_id,
        is_anonymous=payload.is_anonymous,
    )
    return OpinionCreated(opinion=opinion_to_schema(opinion))


@router.post("/{debate_id}/admin/login", response_model=AdminTokenResponse)
async def admin_login(
    debate_id: str,
    payload: AdminLoginRequest,
    service: DebateServiceDep,
) -> AdminTokenResponse:
    token, expires_at = await service.admin_login(debate_id, payload.password)
    return AdminTokenResponse(token=token, expires_at=expires_at)


# ============================================================================
# Admin Endpoints
# ============================================================================


@router.put("/{debate_id}", response_model=DebateDetail)
async def update_debate(
    debate_id: str,
    payload: DebateUpdate,
    admin_debate: DebateAdminDep,
    service: DebateServiceDep,
) -> DebateDetail:
    """
    Edit a debate.

    The schedule and the options are frozen while the debate is active.
    """
    updates = payload.model_dump(exclude={"admin_password"}, exclude_none=True)
    debate = await service.update_debate(admin_debate.id, payload.admin_password, updates)
    return debate_to_detail(debate, can_vote=False)


@router.delete("/{debate_id}", response_model=MessageResponse)
async def delete_debate(
    debate_id: str,
    payload: DebateDelete,
    admin_debate: DebateAdminDep,
    service: DebateServiceDep,
) -> MessageResponse:
    """Soft-delete a debate. Votes and opinions are kept but no longer served."""
    await service.delete_debate(admin_debate.id, payload.admin_password)
    return MessageResponse(message="Debate deleted")


@router.get("/{debate_id}/stats")
async def get_debate_stats(
    debate_id: str,
    admin_debate: DebateAdminDep,
    service: DebateServiceDep,
) -> dict:
    return {"success": True, "debate_id": admin_debate.id, "statistics": service.get_stats(admin_debate)}


@router.get("/{debate_id}/results", response_model=DebateResults)
async def get_debate_results(
    debate_id: str,
    admin_debate: DebateAdminDep,
    service: DebateServiceDep,
) -> DebateResults:
    """Tallies for the admin, even while hidden from the public."""
    return results_to_schema(service.get_results(admin_debate))


@router.delete("/{debate_id}/opinions/{opinion_id}", response_model=MessageResponse)
async def delete_opinion(
    debate_id: str,
    opinion_id: str,
    admin_debate: DebateAdminDep,
    service: DebateServiceDep,
) -> MessageResponse:
    await service.delete_opinion(admin_debate.id, opinion_id)
    return MessageResponse(message="Opinion deleted")
