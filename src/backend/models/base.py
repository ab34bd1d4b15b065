"""
Shared building blocks for Cosmos DB documents.

Documents are flat JSON with embedded relationships. Every aggregate is read
whole, mutated in memory and written back whole; the `_etag` Cosmos attaches
on read is carried on the model so the write can be made conditional.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from core.security import (
    admin_token_expiry,
    digest_token,
    generate_public_id,
    generate_secure_token,
    hash_password,
    tokens_match,
    verify_password,
)


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CosmosDocument(BaseModel):
    """
    Base class for Cosmos DB documents.

    All documents have:
    - id: Opaque public identifier (also the partition key for debates and surveys)
    - etag: The `_etag` Cosmos returned on read, never written back as a field
    """

    model_config = {
        # Cosmos system properties (_rid, _self, _ts, _attachments) are dropped
        "extra": "ignore",
        "use_enum_values": True,
        "validate_default": True,
        "populate_by_name": True,
    }

    id: str = Field(default_factory=generate_public_id)
    etag: Optional[str] = Field(default=None, alias="_etag", exclude=True)

    def to_cosmos(self) -> dict:
        """Serialize for storage."""
        return self.model_dump(mode="json")


class AdminCredential(BaseModel):
    """
    Per-aggregate admin credential, embedded in debates and surveys.

    Only a password hash and a digest of the current session token are kept.
    """

    password_hash: str
    token_digest: Optional[str] = None
    token_expires_at: Optional[datetime] = None

    @classmethod
    def from_password(cls, password: str) -> "AdminCredential":
        return cls(password_hash=hash_password(password))

    def check_password(self, password: str) -> bool:
        return verify_password(password, self.password_hash)

    def issue_token(self, now: datetime) -> str:
        """Start a new admin session, replacing any previous one."""
        token = generate_secure_token()
        self.token_digest = digest_token(token)
        self.token_expires_at = admin_token_expiry(now)
        return token

    def token_valid(self, token: str, now: datetime) -> bool:
        if not self.token_expires_at or as_utc(self.token_expires_at) <= now:
            return False
        return tokens_match(token, self.token_digest)

    def refresh(self, now: datetime) -> None:
        """Slide the session expiry forward after an authenticated action."""
        self.token_expires_at = admin_token_expiry(now)
