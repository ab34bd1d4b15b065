"""
Debate (poll) aggregate stored in the 'debates' container.

Partition key: /id

A debate embeds its options (each with its individual vote records), the
per-voter history used for vote limiting, and free-text opinions. All
eligibility checks and tally updates are methods on the document; callers
load it, call one mutating method, and replace it conditionally on its etag.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from core.exceptions import IneligibleError, InvalidInputError, NotFoundError
from core.rounding import percentage
from core.security import generate_public_id
from models.base import AdminCredential, CosmosDocument, as_utc, utcnow

# ============================================================================
# Enums
# ============================================================================


class DebateStatus(str, Enum):
    """Debate lifecycle status, derived from the voting window."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"


class DebateCategory(str, Enum):
    GENERAL = "general"
    TECH = "tech"
    LIFESTYLE = "lifestyle"
    POLITICS = "politics"
    ENTERTAINMENT = "entertainment"
    SPORTS = "sports"
    OTHER = "other"


ANONYMOUS_AUTHOR = "Anonymous"


def compute_debate_status(
    now: datetime,
    start_at: datetime,
    end_at: datetime,
    is_hidden: bool,
    is_deleted: bool,
    current: str,
) -> str:
    """
    Classify a debate by its voting window.

    Hidden or deleted debates keep whatever status they had. Both ends of the
    window are inclusive, so a zero-length window is active at that instant.
    """
    if is_hidden or is_deleted:
        return current
    if now < as_utc(start_at):
        return DebateStatus.SCHEDULED.value
    if now <= as_utc(end_at):
        return DebateStatus.ACTIVE.value
    return DebateStatus.ENDED.value


# ============================================================================
# Embedded Documents
# ============================================================================


class VoteRecord(BaseModel):
    """A single vote for one option."""

    voter_ip_hash: str
    nickname: Optional[str] = None
    is_anonymous: bool = False
    voted_at: datetime = Field(default_factory=utcnow)


class DebateOption(BaseModel):
    """Embedded vote option within DebateDocument."""

    id: str = Field(default_factory=generate_public_id)
    label: str
    order: int = 0
    votes: list[VoteRecord] = Field(default_factory=list)
    vote_count: int = 0
    percentage: int = 0


class VoterRecord(BaseModel):
    """How many times a pseudonymous voter has voted on this debate."""

    ip_hash: str
    vote_count: int = 0
    last_vote_at: Optional[datetime] = None


class Opinion(BaseModel):
    """Free-text opinion attached to a debate."""

    id: str = Field(default_factory=generate_public_id)
    author_nickname: str
    author_ip_hash: str
    selected_option_id: Optional[str] = None
    content: str
    is_anonymous: bool = False
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = None

    @property
    def display_nickname(self) -> str:
        return ANONYMOUS_AUTHOR if self.is_anonymous else self.author_nickname


class DebateSettings(BaseModel):
    allow_multiple_choice: bool = False
    show_results_before_end: bool = True
    allow_anonymous_vote: bool = True
    allow_opinion: bool = True
    max_votes_per_ip: int = Field(default=1, ge=1)


class DebateStats(BaseModel):
    """Incrementally maintained counters."""

    total_votes: int = 0
    unique_voters: int = 0
    opinion_count: int = 0
    view_count: int = 0
    last_vote_at: Optional[datetime] = None


# ============================================================================
# Debate Document
# ============================================================================


class DebateDocument(CosmosDocument):
    """
    Debate document stored in the 'debates' container.

    Partition key: /id
    """

    title: str
    description: Optional[str] = None
    category: DebateCategory = DebateCategory.GENERAL
    tags: list[str] = Field(default_factory=list)

    author_nickname: str
    author_ip_hash: str
    admin: AdminCredential

    options: list[DebateOption] = Field(default_factory=list)
    settings: DebateSettings = Field(default_factory=DebateSettings)

    # Voting window
    start_at: datetime
    end_at: datetime

    status: DebateStatus = DebateStatus.SCHEDULED
    is_hidden: bool = False
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    stats: DebateStats = Field(default_factory=DebateStats)
    opinions: list[Opinion] = Field(default_factory=list)
    voter_ips: list[VoterRecord] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # ===== Status =====

    def update_status(self, now: Optional[datetime] = None) -> str:
        """Recompute and store the status for the current time."""
        self.status = compute_debate_status(
            now or utcnow(),
            self.start_at,
            self.end_at,
            self.is_hidden,
            self.is_deleted,
            self.status,
        )
        return self.status

    @property
    def is_active(self) -> bool:
        return self.status == DebateStatus.ACTIVE

    @property
    def is_ended(self) -> bool:
        return self.status == DebateStatus.ENDED

    def time_remaining_seconds(self, now: Optional[datetime] = None) -> int:
        """Seconds until the window opens (scheduled) or closes (active)."""
        now = now or utcnow()
        if self.status == DebateStatus.SCHEDULED:
            target = as_utc(self.start_at)
        elif self.status == DebateStatus.ACTIVE:
            target = as_utc(self.end_at)
        else:
            return 0
        return max(0, int((target - now).total_seconds()))

    # ===== Voting =====

    def get_option(self, option_id: str) -> Optional[DebateOption]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None

    def get_voter(self, ip_hash: str) -> Optional[VoterRecord]:
        for voter in self.voter_ips:
            if voter.ip_hash == ip_hash:
                return voter
        return None

    def can_vote(self, ip_hash: str, now: Optional[datetime] = None) -> bool:
        """Whether this voter may cast (another) vote right now."""
        self.update_status(now)
        if self.status != DebateStatus.ACTIVE:
            return False
        if self.is_hidden or self.is_deleted:
            return False
        voter = self.get_voter(ip_hash)
        if voter is not None and voter.vote_count >= self.settings.max_votes_per_ip:
            return False
        return True

    def cast_vote(
        self,
        option_ids: list[str],
        ip_hash: str,
        nickname: Optional[str] = None,
        is_anonymous: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Record one vote per selected option and refresh every tally.

        Raises:
            InvalidInputError: Empty selection, more than one option on a
                single-choice debate, duplicate or unknown option ids, or an
                anonymous vote when anonymous voting is disabled
            IneligibleError: Debate not active or the voter's limit is reached
        """
        now = now or utcnow()

        if not option_ids:
            raise InvalidInputError("Select at least one option", field="option_ids")

        if not self.can_vote(ip_hash, now):
            raise IneligibleError("You cannot vote on this debate")

        if not self.settings.allow_multiple_choice and len(option_ids) > 1:
            raise InvalidInputError("Only a single option can be selected", field="option_ids")

        if len(set(option_ids)) != len(option_ids):
            raise InvalidInputError("Invalid option", field="option_ids")
        options = [self.get_option(option_id) for option_id in option_ids]
        if any(option is None for option in options):
            raise InvalidInputError("Invalid option", field="option_ids")

        if is_anonymous and not self.settings.allow_anonymous_vote:
            raise InvalidInputError("Anonymous voting is not allowed on this debate", field="is_anonymous")

        for option in options:
            option.votes.append(
                VoteRecord(
                    voter_ip_hash=ip_hash,
                    nickname=nickname,
                    is_anonymous=is_anonymous,
                    voted_at=now,
                )
            )
            option.vote_count = len(option.votes)

        voter = self.get_voter(ip_hash)
        if voter is not None:
            voter.vote_count += 1
            voter.last_vote_at = now
        else:
            self.voter_ips.append(VoterRecord(ip_hash=ip_hash, vote_count=1, last_vote_at=now))

        self.stats.total_votes += len(option_ids)
        self.stats.unique_voters = len(self.voter_ips)
        self.stats.last_vote_at = now
        self.update_percentages()
        self.updated_at = now

    def update_percentages(self) -> None:
        """Integer percentage of total votes per option, rounded independently."""
        for option in self.options:
            option.percentage = percentage(option.vote_count, self.stats.total_votes)

    # ===== Opinions =====

    def add_opinion(
        self,
        content: str,
        ip_hash: str,
        author_nickname: str,
        selected_option_id: Optional[str] = None,
        is_anonymous: bool = False,
        now: Optional[datetime] = None,
    ) -> Opinion:
        """
        Append a free-text opinion.

        Raises:
            IneligibleError: Opinions disabled, or the debate has not started
            InvalidInputError: Linked option does not exist
        """
        now = now or utcnow()

        if not self.settings.allow_opinion:
            raise IneligibleError("Opinions are disabled for this debate")

        self.update_status(now)
        if self.status == DebateStatus.SCHEDULED:
            raise IneligibleError("This debate has not started yet")

        if selected_option_id and self.get_option(selected_option_id) is None:
            raise InvalidInputError("Invalid option", field="selected_option_id")

        opinion = Opinion(
            author_nickname=author_nickname,
            author_ip_hash=ip_hash,
            selected_option_id=selected_option_id or None,
            content=content,
            is_anonymous=is_anonymous,
            created_at=now,
        )
        self.opinions.append(opinion)
        self._recount_opinions()
        self.updated_at = now
        return opinion

    def delete_opinion(self, opinion_id: str, now: Optional[datetime] = None) -> None:
        """Soft-delete an opinion."""
        now = now or utcnow()
        for opinion in self.opinions:
            if opinion.id == opinion_id and not opinion.is_deleted:
                opinion.is_deleted = True
                opinion.deleted_at = now
                self._recount_opinions()
                self.updated_at = now
                return
        raise NotFoundError("Opinion not found")

    def visible_opinions(self) -> list[Opinion]:
        """Non-deleted opinions, newest first."""
        live = [opinion for opinion in self.opinions if not opinion.is_deleted]
        return sorted(live, key=lambda opinion: as_utc(opinion.created_at), reverse=True)

    def _recount_opinions(self) -> None:
        self.stats.opinion_count = sum(1 for opinion in self.opinions if not opinion.is_deleted)

    # ===== Results =====

    def get_results(self, force: bool = False, now: Optional[datetime] = None) -> Optional[dict[str, Any]]:
        """
        Tallies, or None while results are hidden.

        Results are visible when forced (the debate's admin), when the debate
        shows results before it ends, or once it has ended.
        """
        self.update_status(now)
        if not force and not self.settings.show_results_before_end and self.status != DebateStatus.ENDED:
            return None
        return {
            "options": [
                {
                    "id": option.id,
                    "label": option.label,
                    "vote_count": option.vote_count,
                    "percentage": option.percentage,
                }
                for option in self.options
            ],
            "total_votes": self.stats.total_votes,
            "unique_voters": self.stats.unique_voters,
        }

    # ===== Admin =====

    def record_view(self) -> None:
        self.stats.view_count += 1

    def apply_update(
        self,
        updates: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> None:
        """
        Apply an admin edit.

        Title, description, category, tags and visibility can always change.
        The schedule and the options are frozen while the debate is active,
        and options cannot be replaced once votes exist.
        """
        now = now or utcnow()
        self.update_status(now)

        structural = {key for key in ("start_at", "end_at", "options") if updates.get(key) is not None}
        if structural and self.status == DebateStatus.ACTIVE:
            raise InvalidInputError("The schedule and options of an active debate cannot be changed")

        for field in ("title", "description", "category", "tags", "is_hidden"):
            if updates.get(field) is not None:
                setattr(self, field, updates[field])

        if "start_at" in structural or "end_at" in structural:
            start_at = as_utc(updates.get("start_at") or self.start_at)
            end_at = as_utc(updates.get("end_at") or self.end_at)
            if end_at <= start_at:
                raise InvalidInputError("The end time must be after the start time", field="end_at")
            self.start_at = start_at
            self.end_at = end_at

        if "options" in structural:
            if self.stats.total_votes > 0:
                raise InvalidInputError("Options cannot be changed after votes have been cast", field="options")
            labels = updates["options"]
            if len(labels) < 2:
                raise InvalidInputError("At least two options are required", field="options")
            self.options = [DebateOption(label=label, order=index) for index, label in enumerate(labels)]

        self.updated_at = now
        # Unhiding re-derives the status from the window
        self.update_status(now)

    def soft_delete(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self.is_deleted = True
        self.deleted_at = now
        self.updated_at = now
