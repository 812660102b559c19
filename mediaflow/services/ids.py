# mediaflow/services/ids.py
import re
from typing import Optional

from mediaflow.app.domain.models import Platform

_HOST_MARKERS: tuple[tuple[Platform, tuple[str, ...]], ...] = (
    (Platform.INSTAGRAM, ("instagram.com", "instagr.am")),
    (Platform.TIKTOK, ("tiktok.com",)),
    (Platform.YOUTUBE, ("youtube.com", "youtu.be")),
)

SHORT_FORM_PLATFORMS = frozenset({Platform.INSTAGRAM, Platform.TIKTOK})

_IG_RE = re.compile(r"instagram\.com/(?:reel|p|reels)/([A-Za-z0-9_-]+)")
_TIKTOK_VIDEO_RE = re.compile(r"tiktok\.com/.*?/video/(\d+)")
_TIKTOK_SHORT_RE = re.compile(r"vm\.tiktok\.com/([A-Za-z0-9]+)")
_YT_RES = (
    re.compile(r"youtube\.com/watch\?(?:.*&)?v=([A-Za-z0-9_-]{11})"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/(?:embed|shorts|live)/([A-Za-z0-9_-]{11})"),
    re.compile(r"^([A-Za-z0-9_-]{11})$"),
)


def detect_platform(url: str) -> Optional[Platform]:
    """Classify a URL by host. ``None`` means the platform is not supported."""
    if not url:
        return None
    lowered = url.lower()
    for platform, markers in _HOST_MARKERS:
        if any(marker in lowered for marker in markers):
            return platform
    return None


def is_short_form(platform: Optional[Platform]) -> bool:
    return platform in SHORT_FORM_PLATFORMS


def parse_youtube_id(url: str) -> Optional[str]:
    for pattern in _YT_RES:
        m = pattern.search(url)
        if m:
            return m.group(1)
    return None


def parse_source_id(url: str, platform: Platform) -> Optional[str]:
    """Platform-specific id taken from the URL path, when present."""
    if platform is Platform.INSTAGRAM:
        m = _IG_RE.search(url)
        return m.group(1) if m else None
    if platform is Platform.TIKTOK:
        m = _TIKTOK_VIDEO_RE.search(url) or _TIKTOK_SHORT_RE.search(url)
        return m.group(1) if m else None
    if platform is Platform.YOUTUBE:
        return parse_youtube_id(url)
    return None


def youtube_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def profile_url_for(platform: Platform, handle: str) -> str:
    handle = handle.lstrip("@")
    if platform is Platform.INSTAGRAM:
        return f"https://www.instagram.com/{handle}/"
    if platform is Platform.TIKTOK:
        return f"https://www.tiktok.com/@{handle}"
    return f"https://www.youtube.com/channel/{handle}"
