"""
Shared request/response schemas.
"""

from datetime import datetime
from math import ceil

from pydantic import BaseModel, Field

from core.config import settings


class Pagination(BaseModel):
    """Pagination block returned with every list."""

    page: int
    per_page: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, per_page: int, total: int) -> "Pagination":
        return cls(page=page, per_page=per_page, total=total, total_pages=ceil(total / per_page) if per_page else 0)


class AdminLoginRequest(BaseModel):
    """Exchange a debate's or survey's admin password for a session token."""

    password: str = Field(..., min_length=1, max_length=128)


class AdminTokenResponse(BaseModel):
    """Admin session token. Send it back as `Authorization: Bearer <token>`."""

    success: bool = True
    token: str
    expires_at: datetime


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def admin_password_field():
    return Field(..., min_length=settings.ADMIN_PASSWORD_MIN_LENGTH, max_length=128)
