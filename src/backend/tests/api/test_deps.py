"""
Tests for API dependencies (deps.py).

Tests client address resolution and admin token extraction.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from api.deps import _bearer_token, get_client_ip, get_ip_hash
from core.exceptions import UnauthorizedError


def make_request(headers: dict, host: str | None = "10.1.2.3") -> MagicMock:
    request = MagicMock()
    request.headers = headers
    request.client = MagicMock(host=host) if host else None
    return request


@pytest.mark.unit
class TestClientIp:
    def test_forwarded_for_first_hop(self) -> None:
        request = make_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_real_ip_fallback(self) -> None:
        request = make_request({"X-Real-IP": " 203.0.113.6 "})
        assert get_client_ip(request) == "203.0.113.6"

    def test_socket_peer_fallback(self) -> None:
        assert get_client_ip(make_request({})) == "10.1.2.3"

    def test_unknown_without_client(self) -> None:
        assert get_client_ip(make_request({}, host=None)) == "unknown"

    def test_hash_is_stable_and_not_the_address(self) -> None:
        first = get_ip_hash("203.0.113.5")
        assert first == get_ip_hash("203.0.113.5")
        assert first != get_ip_hash("203.0.113.6")
        assert "203.0.113.5" not in first


@pytest.mark.unit
class TestBearerToken:
    def test_missing_credentials(self) -> None:
        with pytest.raises(UnauthorizedError):
            _bearer_token(None)

    def test_extracts_token(self) -> None:
        credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="abc")
        assert _bearer_token(credentials) == "abc"
