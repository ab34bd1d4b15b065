"""
Debate (poll) service.

Orchestrates the debate aggregate: creation, public reads, voting, opinions
and admin moderation. Every write goes through an optimistic
load/mutate/replace cycle so concurrent voters never lose each other's votes.
"""

from datetime import datetime
from typing import Any, Callable, Optional, TypeVar

import structlog

from core.exceptions import ForbiddenError, InvalidInputError, NotFoundError, UnauthorizedError
from models.base import AdminCredential, as_utc, utcnow
from models.debate import DebateDocument, DebateOption, DebateSettings, Opinion
from repositories.provider import DebateRepositoryProtocol
from services.concurrency import update_with_retry
from services.statistics_service import generate_debate_statistics

logger = structlog.get_logger(__name__)

ResultT = TypeVar("ResultT")


class DebateService:
    """Service for debate lifecycle and participation."""

    def __init__(self, repo: DebateRepositoryProtocol):
        self.repo = repo

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _load(self, debate_id: str) -> DebateDocument:
        debate = await self.repo.get_by_id(debate_id)
        if debate is None or debate.is_deleted:
            raise NotFoundError("Debate not found")
        return debate

    async def _update(
        self,
        debate_id: str,
        mutate: Callable[[DebateDocument], ResultT],
    ) -> tuple[DebateDocument, ResultT]:
        return await update_with_retry(
            load=lambda: self._load(debate_id),
            mutate=mutate,
            save=self.repo.replace,
        )

    # ========================================================================
    # Public operations
    # ========================================================================

    async def create_debate(
        self,
        title: str,
        options: list[str],
        start_at: datetime,
        end_at: datetime,
        admin_password: str,
        ip_hash: str,
        author_nickname: str,
        description: Optional[str] = None,
        category: str = "general",
        tags: Optional[list[str]] = None,
        settings: Optional[DebateSettings] = None,
    ) -> DebateDocument:
        """
        Create a debate.

        Raises:
            InvalidInputError: Fewer than two options, or the window is empty
        """
        now = utcnow()
        labels = [label for label in options if label]
        if len(labels) < 2:
            raise InvalidInputError("At least two options are required", field="options")

        start_at, end_at = as_utc(start_at), as_utc(end_at)
        if end_at <= start_at:
            raise InvalidInputError("The end time must be after the start time", field="end_at")

        debate = DebateDocument(
            title=title,
            description=description,
            category=category,
            tags=tags or [],
            author_nickname=author_nickname,
            author_ip_hash=ip_hash,
            admin=AdminCredential.from_password(admin_password),
            options=[DebateOption(label=label, order=index) for index, label in enumerate(labels)],
            settings=settings or DebateSettings(),
            start_at=start_at,
            end_at=end_at,
            created_at=now,
            updated_at=now,
        )
        debate.update_status(now)

        created = await self.repo.create(debate)
        logger.info("debate_created", debate_id=created.id, status=created.status)
        return created

    async def list_debates(
        self,
        page: int = 1,
        per_page: int = 20,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        sort: str = "latest",
    ) -> tuple[list[DebateDocument], int]:
        """Public listing. Statuses are refreshed in memory only."""
        debates, total = await self.repo.list_debates(
            page=page,
            per_page=per_page,
            category=category,
            status=status,
            search=search,
            sort=sort,
        )
        now = utcnow()
        for debate in debates:
            debate.update_status(now)
        return debates, total

    async def get_debate(self, debate_id: str, ip_hash: str) -> tuple[DebateDocument, bool]:
        """
        Public read. Counts the view and persists the refreshed status.

        Returns:
            (debate, whether this caller may vote)
        """
        now = utcnow()

        def view(debate: DebateDocument) -> None:
            debate.record_view()
            debate.update_status(now)

        debate, _ = await self._update(debate_id, view)
        return debate, debate.can_vote(ip_hash, now)

    async def cast_vote(
        self,
        debate_id: str,
        option_ids: list[str],
        ip_hash: str,
        nickname: Optional[str] = None,
        is_anonymous: bool = False,
    ) -> DebateDocument:
        """Record a vote. A vote without a nickname is anonymous."""
        now = utcnow()
        anonymous = is_anonymous or not nickname

        def vote(debate: DebateDocument) -> None:
            debate.cast_vote(
                option_ids,
                ip_hash,
                nickname=None if anonymous else nickname,
                is_anonymous=anonymous,
                now=now,
            )

        debate, _ = await self._update(debate_id, vote)
        logger.info(
            "debate_vote_cast",
            debate_id=debate_id,
            options=len(option_ids),
            total_votes=debate.stats.total_votes,
        )
        return debate

    async def add_opinion(
        self,
        debate_id: str,
        content: str,
        ip_hash: str,
        author_nickname: str,
        selected_option_id: Optional[str] = None,
        is_anonymous: bool = False,
    ) -> Opinion:
        now = utcnow()

        def add(debate: DebateDocument) -> Opinion:
            return debate.add_opinion(
                content,
                ip_hash,
                author_nickname,
                selected_option_id=selected_option_id,
                is_anonymous=is_anonymous,
                now=now,
            )

        _, opinion = await self._update(debate_id, add)
        logger.info("debate_opinion_added", debate_id=debate_id, opinion_id=opinion.id)
        return opinion

    # ========================================================================
    # Admin operations
    # ========================================================================

    async def admin_login(self, debate_id: str, password: str) -> tuple[str, datetime]:
        """
        Exchange the admin password for a session token.

        Raises:
            UnauthorizedError: Wrong password
        """
        now = utcnow()

        def login(debate: DebateDocument) -> str:
            if not debate.admin.check_password(password):
                raise UnauthorizedError("Invalid password")
            return debate.admin.issue_token(now)

        debate, token = await self._update(debate_id, login)
        logger.info("debate_admin_login", debate_id=debate_id)
        return token, debate.admin.token_expires_at

    async def authenticate_admin(self, debate_id: str, token: str) -> DebateDocument:
        """
        Check an admin token and slide its expiry forward.

        Raises:
            UnauthorizedError: Missing, wrong or expired token
        """
        now = utcnow()

        def check(debate: DebateDocument) -> None:
            if not token or not debate.admin.token_valid(token, now):
                raise UnauthorizedError("Invalid or expired admin token")
            debate.admin.refresh(now)

        debate, _ = await self._update(debate_id, check)
        return debate

    async def update_debate(self, debate_id: str, admin_password: str, updates: dict[str, Any]) -> DebateDocument:
        """
        Apply an admin edit after re-checking the admin password.

        Raises:
            ForbiddenError: Password does not match
            InvalidInputError: Schedule/options change while active, or bad window
        """
        now = utcnow()

        def edit(debate: DebateDocument) -> None:
            if not debate.admin.check_password(admin_password):
                raise ForbiddenError("Admin password does not match")
            debate.apply_update(updates, now)

        debate, _ = await self._update(debate_id, edit)
        logger.info("debate_updated", debate_id=debate_id, fields=sorted(k for k, v in updates.items() if v is not None))
        return debate

    async def delete_debate(self, debate_id: str, admin_password: str) -> None:
        now = utcnow()

        def delete(debate: DebateDocument) -> None:
            if not debate.admin.check_password(admin_password):
                raise ForbiddenError("Admin password does not match")
            debate.soft_delete(now)

        await self._update(debate_id, delete)
        logger.info("debate_deleted", debate_id=debate_id)

    async def delete_opinion(self, debate_id: str, opinion_id: str) -> DebateDocument:
        now = utcnow()
        debate, _ = await self._update(debate_id, lambda debate: debate.delete_opinion(opinion_id, now))
        logger.info("debate_opinion_deleted", debate_id=debate_id, opinion_id=opinion_id)
        return debate

    def get_results(self, debate: DebateDocument) -> dict[str, Any]:
        """Admin view of the tallies, regardless of visibility settings."""
        return debate.get_results(force=True)

    def get_stats(self, debate: DebateDocument) -> dict[str, Any]:
        return generate_debate_statistics(debate)
