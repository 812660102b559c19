from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any

import yt_dlp
from starlette.concurrency import run_in_threadpool
from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from mediaflow.app.domain.models import CreatorInfo, ExtractedMetadata, Platform
from mediaflow.services.errors import (
    ExtractionFailedError,
    InvalidURLError,
    PrivateOrUnavailableError,
    RateLimitedError,
    UnsupportedPlatformError,
)
from mediaflow.services.ids import detect_platform, parse_source_id

logger = logging.getLogger(__name__)

HTTP_STATUS_PATTERN = re.compile(r"HTTP Error (\d{3})")
PRIORITY_LANGUAGES = ("en", "en-US", "en-GB")
DEFAULT_TITLE = "Untitled"


def _clean_string(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _safe_numeric(value: object, default: int | float = 0) -> int | float:
    return value if isinstance(value, (int, float)) else default


def _optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(round(value))


def _extract_thumbnail(info: dict | None) -> str | None:
    if not isinstance(info, dict):
        return None

    direct_url = _clean_string(info.get("thumbnail")) or _clean_string(info.get("thumbnail_url"))
    if direct_url:
        return direct_url

    return _find_best_thumbnail_from_list(info.get("thumbnails"))


def _find_best_thumbnail_from_list(thumbnails: list | None) -> str | None:
    if not isinstance(thumbnails, list):
        return None

    scored_thumbnails = [
        (_score_thumbnail(entry), _clean_string(entry.get("url")))
        for entry in thumbnails
        if isinstance(entry, dict) and _clean_string(entry.get("url"))
    ]

    if not scored_thumbnails:
        return None

    scored_thumbnails.sort(reverse=True, key=lambda x: x[0])
    return scored_thumbnails[0][1]


def _score_thumbnail(entry: dict) -> tuple[int | float, int | float, int | float]:
    return (
        _safe_numeric(entry.get("preference")),
        _safe_numeric(entry.get("width")),
        _safe_numeric(entry.get("height")),
    )


def _selected_format(info: dict) -> dict | None:
    if _clean_string(info.get("url")):
        return info

    requested = info.get("requested_formats") or info.get("requested_downloads")
    if isinstance(requested, list):
        for item in requested:
            if isinstance(item, dict) and _clean_string(item.get("url")):
                return item
    return None


def _extract_media_url(info: dict) -> str | None:
    selected = _selected_format(info)
    return _clean_string(selected.get("url")) if selected else None


def _extract_media_headers(info: dict) -> dict[str, str] | None:
    """Headers yt-dlp would send for the chosen format (Referer, User-Agent)."""
    selected = _selected_format(info) or {}
    headers = selected.get("http_headers") or info.get("http_headers")
    if not isinstance(headers, dict):
        return None
    cleaned = {str(k): str(v) for k, v in headers.items() if isinstance(v, str) and v}
    return cleaned or None


def format_upload_date(value: str | None) -> str | None:
    """``YYYYMMDD`` (yt-dlp) to an ISO timestamp at midnight UTC."""
    if not value:
        return None
    if len(value) == 8 and value.isdigit():
        return f"{value[0:4]}-{value[4:6]}-{value[6:8]}T00:00:00Z"
    return value


def _extract_creator(info: dict, platform: Platform) -> CreatorInfo | None:
    name = _clean_string(info.get("uploader")) or _clean_string(info.get("channel"))
    if not name:
        return None
    # YouTube creators are keyed by channel id, the others by handle
    id_keys = ("channel_id", "uploader_id") if platform is Platform.YOUTUBE else ("uploader_id", "channel_id")
    handle = next(filter(None, (_clean_string(info.get(k)) for k in id_keys)), None) or name
    avatar = _clean_string(info.get("uploader_avatar")) or _clean_string(info.get("channel_avatar"))
    return CreatorInfo(handle=handle, display_name=name, avatar_url=avatar)


def _create_ydl_options(**overrides: Any) -> dict:
    base_opts = {
        "quiet": True,
        "noprogress": True,
        "no_warnings": True,
        "check_formats": False,
        "skip_download": True,
    }
    base_opts.update(overrides)
    return base_opts


def _check_video_availability(info: dict) -> None:
    is_private = info.get("is_private")
    availability = info.get("availability")
    if is_private or availability in {"private", "needs_auth"}:
        raise PrivateOrUnavailableError("Video is private or requires login")


def _status_from_error(error: Exception) -> int | None:
    match = HTTP_STATUS_PATTERN.search(str(error))
    return int(match.group(1)) if match else None


def _translate_download_error(error: Exception) -> ExtractionFailedError:
    status_code = _status_from_error(error)
    if status_code == 429:
        return RateLimitedError(f"Upstream rate limited the request: {error}")
    return ExtractionFailedError(f"Failed to extract video metadata: {error}", status_code)


def _resolve_platform(url: str) -> Platform:
    if not url or not url.strip():
        raise InvalidURLError("URL is required")
    platform = detect_platform(url)
    if platform is None:
        raise UnsupportedPlatformError(f"Unsupported platform for URL: {url}")
    return platform


def fetch_info(url: str, *, process: bool = True) -> dict:
    """Run yt-dlp metadata extraction for ``url`` without downloading media."""
    try:
        with yt_dlp.YoutubeDL(_create_ydl_options()) as ydl:
            info = ydl.extract_info(url, download=False, process=process)
    except yt_dlp.utils.DownloadError as error:
        raise _translate_download_error(error) from error
    except (ConnectionError, TimeoutError) as error:
        raise ExtractionFailedError(f"Network error extracting video: {error}") from error

    if not isinstance(info, dict):
        raise PrivateOrUnavailableError("Post is private or not available")

    _check_video_availability(info)
    return info


def build_metadata(url: str, platform: Platform, info: dict) -> ExtractedMetadata:
    source_id = parse_source_id(url, platform) or _clean_string(info.get("id"))
    return ExtractedMetadata(
        platform=platform,
        source_id=source_id,
        title=_clean_string(info.get("title")) or _clean_string(info.get("fulltitle")) or DEFAULT_TITLE,
        description=_clean_string(info.get("description")),
        duration_seconds=_optional_int(info.get("duration")),
        thumbnail_url=_extract_thumbnail(info),
        creator=_extract_creator(info, platform),
        published_at=format_upload_date(_clean_string(info.get("upload_date"))),
        media_url=_extract_media_url(info),
        media_headers=_extract_media_headers(info),
        view_count=_optional_int(info.get("view_count")),
    )


def _fetch_transcript_data(video_id: str) -> list[dict] | None:
    try:
        fetched = YouTubeTranscriptApi().fetch(video_id, languages=list(PRIORITY_LANGUAGES))
    except CouldNotRetrieveTranscript as error:
        logger.info("No transcript for %s: %s", video_id, type(error).__name__)
        return None
    except (ConnectionError, TimeoutError) as error:
        logger.warning("Network error fetching transcript: %s", error)
        return None
    return fetched.to_raw_data() if hasattr(fetched, "to_raw_data") else list(fetched)


def get_youtube_captions(video_id: str) -> str | None:
    data = _fetch_transcript_data(video_id)
    if not data:
        return None

    text_parts = [
        item.get("text", "").strip()
        for item in data
        if isinstance(item, dict) and item.get("text")
    ]

    full_text = " ".join(text_parts).strip()
    return full_text or None


class MetadataExtractor:
    """Async facade over the blocking yt-dlp extraction."""

    async def extract_metadata(self, url: str) -> ExtractedMetadata:
        platform = _resolve_platform(url)
        info = await run_in_threadpool(fetch_info, url)
        return build_metadata(url, platform, info)

    async def quick_extract_metadata(self, url: str) -> ExtractedMetadata:
        """Skips format resolution, so no playable ``media_url`` is returned."""
        platform = _resolve_platform(url)
        info = await run_in_threadpool(fetch_info, url, process=False)
        return replace(build_metadata(url, platform, info), media_url=None, media_headers=None)

    async def fetch_captions(self, youtube_id: str) -> str | None:
        """Best-effort caption text for a YouTube video; never raises on absence."""
        return await run_in_threadpool(get_youtube_captions, youtube_id)
