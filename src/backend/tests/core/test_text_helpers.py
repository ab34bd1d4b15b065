"""
Tests for rounding, sanitization and user agent parsing.
"""

import pytest

from core.rounding import percentage, round_half_up
from core.sanitizer import sanitize_list, sanitize_text
from core.user_agent import parse_user_agent

CHROME_DESKTOP = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
EDGE_DESKTOP = CHROME_DESKTOP + " Edg/120.0.0.0"
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
SAFARI_IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
FIREFOX_LINUX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


@pytest.mark.unit
class TestRounding:
    def test_halves_round_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(1.25, 1) == 1.3

    def test_percentage_of_zero_total_is_zero(self):
        assert percentage(0, 0) == 0
        assert percentage(3, 0) == 0

    def test_percentage_rounds_each_part_independently(self):
        # 1/3 and 2/3 -> 33 and 67; 1/8 -> 12.5 -> 13
        assert percentage(1, 3) == 33
        assert percentage(2, 3) == 67
        assert percentage(1, 8) == 13

    def test_percentage_full(self):
        assert percentage(5, 5) == 100


@pytest.mark.unit
class TestSanitizer:
    def test_strips_tags(self):
        assert sanitize_text("<b>Hello</b> world") == "Hello world"

    def test_drops_script_contents(self):
        assert sanitize_text("Hi<script>alert(1)</script>!") == "Hi!"

    def test_encoded_tags_do_not_survive(self):
        assert sanitize_text("&lt;img src=x onerror=alert(1)&gt;ok") == "ok"

    def test_passes_through_empty_values(self):
        assert sanitize_text(None) is None
        assert sanitize_text("") == ""

    def test_list_drops_empties(self):
        assert sanitize_list(["<i>tech</i>", "<br>", " news "]) == ["tech", "news"]
        assert sanitize_list(None) == []


@pytest.mark.unit
class TestUserAgent:
    @pytest.mark.parametrize(
        "user_agent,expected",
        [
            (CHROME_DESKTOP, ("Chrome", "desktop")),
            (EDGE_DESKTOP, ("Edge", "desktop")),
            (SAFARI_IPHONE, ("Safari", "mobile")),
            (SAFARI_IPAD, ("Safari", "tablet")),
            (FIREFOX_LINUX, ("Firefox", "desktop")),
            (None, ("unknown", "unknown")),
        ],
    )
    def test_classification(self, user_agent, expected):
        assert parse_user_agent(user_agent) == expected
