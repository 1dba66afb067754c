"""Request metadata derived from the user agent and client IP."""

import re

from surveypulse.domains.response.models import ResponseMetadata
from surveypulse.integrations.geo import GeoLocator

TABLET_PATTERN = re.compile(r"ipad|tablet", re.IGNORECASE)
MOBILE_PATTERN = re.compile(r"mobile|android|iphone|ipod", re.IGNORECASE)

# First match wins
BROWSER_MARKERS = (
    ("edg", "Edge"),
    ("chrome", "Chrome"),
    ("firefox", "Firefox"),
    ("safari", "Safari"),
)

# iOS agents carry "like Mac OS X", so macOS is matched on markers iOS lacks
OS_MARKERS = (
    (("windows",), "Windows"),
    (("macintosh", "macos"), "macOS"),
    (("android",), "Android"),
    (("iphone", "ipad", "ios"), "iOS"),
    (("linux",), "Linux"),
)


def detect_device(user_agent: str) -> str:
    if TABLET_PATTERN.search(user_agent):
        return "tablet"
    if MOBILE_PATTERN.search(user_agent):
        return "mobile"
    return "desktop"


def detect_browser(user_agent: str) -> str:
    ua = user_agent.lower()
    for marker, name in BROWSER_MARKERS:
        if marker in ua:
            return name
    return "unknown"


def detect_os(user_agent: str) -> str:
    ua = user_agent.lower()
    for markers, name in OS_MARKERS:
        if any(marker in ua for marker in markers):
            return name
    return "unknown"


def parse_user_agent(user_agent: str | None) -> ResponseMetadata:
    """Device, browser and OS for a user agent; location is left empty."""
    ua = user_agent or ""
    return ResponseMetadata(
        device=detect_device(ua),
        browser=detect_browser(ua),
        os=detect_os(ua),
        location=None,
        user_agent=user_agent,
    )


async def build_metadata(
    user_agent: str | None, ip: str | None, geo: GeoLocator | None
) -> ResponseMetadata:
    """Full request metadata, including the geolocated IP when available."""
    metadata = parse_user_agent(user_agent)
    if geo is not None:
        metadata.location = await geo.lookup(ip)
    return metadata
