"""
Request metadata helpers

Extract the origin address, client signature and referrer of a view request
and summarise the User-Agent for the ledger.
"""

from typing import Any

from starlette.requests import Request
from user_agents import parse as parse_ua

from viewguard.constants.view_tracking import DIRECT_REFERRER


def get_client_ip(request: Request) -> str | None:
    """
    Origin address of the request.

    Prefers the first hop of ``X-Forwarded-For``, then ``X-Real-IP``, then
    the socket peer. Shared NATs and proxies collapse many readers into one
    address; the value is taken as-is.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop[:45]

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()[:45]

    if request.client and request.client.host:
        return request.client.host
    return None


def get_user_agent(request: Request) -> str | None:
    user_agent = request.headers.get("user-agent")
    if user_agent is None or not user_agent.strip():
        return None
    return user_agent


def get_referrer(request: Request) -> str:
    return request.headers.get("referer") or DIRECT_REFERRER


def describe_user_agent(user_agent: str | None) -> dict[str, Any]:
    """Browser, OS and device family of a User-Agent, for ledger metadata."""
    if not user_agent:
        return {"browser": "Unknown", "os": "Unknown", "device_type": None}

    ua = parse_ua(user_agent)
    if ua.is_mobile:
        device_type = "mobile"
    elif ua.is_tablet:
        device_type = "tablet"
    elif ua.is_pc:
        device_type = "desktop"
    else:
        device_type = None

    return {
        "browser": ua.browser.family or "Unknown",
        "browser_version": ua.browser.version_string or None,
        "os": ua.os.family or "Unknown",
        "os_version": ua.os.version_string or None,
        "device_type": device_type,
        "ua_reports_bot": ua.is_bot,
    }
