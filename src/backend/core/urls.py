"""Shareable frontend links for debates, surveys and response receipts."""

from core.config import settings


def _base() -> str:
    return settings.FRONTEND_URL.rstrip("/")


def debate_urls(debate_id: str) -> tuple[str, str]:
    """(public_url, admin_url)"""
    return f"{_base()}/debate/{debate_id}", f"{_base()}/debate/admin/{debate_id}"


def survey_urls(survey_id: str) -> tuple[str, str]:
    """(public_url, admin_url)"""
    return f"{_base()}/s/{survey_id}", f"{_base()}/admin/{survey_id}"


def response_url(response_code: str) -> str:
    return f"{_base()}/r/{response_code}"
