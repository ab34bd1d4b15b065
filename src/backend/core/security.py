"""Security utilities for pseudonymization and admin credentials.

Surbate has no user accounts. Every debate and survey carries its own admin
password, and a successful login issues an opaque session token with a
sliding 24-hour expiry. Client addresses are only ever stored as salted
one-way digests.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from werkzeug.security import check_password_hash, generate_password_hash

from core.config import settings


def hash_ip(ip_address: str, salt: str | None = None) -> str:
    """
    Turn a raw client address into a pseudonymous identifier.

    The same address and salt always produce the same digest, which is what
    lets per-voter limits and the one-response-per-respondent rule hold
    across requests without ever persisting the address itself.

    Args:
        ip_address: The client's network address as seen by the HTTP layer
        salt: Override for the configured IP_SALT

    Returns:
        Hex-encoded SHA-256 of address + salt
    """
    data = f"{ip_address}{salt if salt is not None else settings.IP_SALT}"
    return hashlib.sha256(data.encode()).hexdigest()


def hash_password(password: str) -> str:
    """Hash an admin password for storage."""
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check an admin password against its stored hash."""
    if not password or not password_hash:
        return False
    return check_password_hash(password_hash, password)


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token."""
    return secrets.token_hex(length)


def digest_token(token: str) -> str:
    """Digest a session token so the raw value is never stored."""
    return hashlib.sha256(f"{token}:{settings.SECRET_KEY}".encode()).hexdigest()


def tokens_match(token: str, token_digest: str | None) -> bool:
    """Constant-time comparison of a presented token against a stored digest."""
    if not token or not token_digest:
        return False
    return hmac.compare_digest(digest_token(token), token_digest)


def admin_token_expiry(now: datetime) -> datetime:
    """Expiry timestamp for a freshly issued or refreshed admin token."""
    return now + timedelta(hours=settings.ADMIN_TOKEN_EXPIRE_HOURS)


def generate_public_id() -> str:
    """Opaque public identifier for debates, surveys and responses (16 hex chars)."""
    return secrets.token_hex(8)


def generate_response_code() -> str:
    """Short human-shareable receipt code (8 uppercase hex chars)."""
    return secrets.token_hex(4).upper()
