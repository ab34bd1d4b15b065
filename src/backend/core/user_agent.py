"""Coarse browser/device classification from a User-Agent header."""

import re
from typing import Optional

_MOBILE = re.compile(r"Android|webOS|iPhone|iPad|iPod|BlackBerry|IEMobile|Opera Mini", re.IGNORECASE)
_TABLET = re.compile(r"Tablet|iPad|Playbook|Silk", re.IGNORECASE)


def parse_user_agent(user_agent: Optional[str]) -> tuple[str, str]:
    """Return (browser, device_type) for display in statistics."""
    if not user_agent:
        return "unknown", "unknown"

    # Order matters: Edge and Chrome both claim Safari, Edge also claims Chrome
    if "Edg" in user_agent:
        browser = "Edge"
    elif "Chrome" in user_agent:
        browser = "Chrome"
    elif "Safari" in user_agent:
        browser = "Safari"
    elif "Firefox" in user_agent:
        browser = "Firefox"
    elif "MSIE" in user_agent or "Trident/" in user_agent:
        browser = "Internet Explorer"
    else:
        browser = "unknown"

    if _MOBILE.search(user_agent):
        device_type = "tablet" if re.search(r"iPad", user_agent, re.IGNORECASE) else "mobile"
    elif _TABLET.search(user_agent):
        device_type = "tablet"
    else:
        device_type = "desktop"

    return browser, device_type
