from __future__ import annotations

import pytest

from mediaflow.app.domain.models import Platform
from mediaflow.services.ids import (
    detect_platform,
    is_short_form,
    parse_source_id,
    parse_youtube_id,
    profile_url_for,
    youtube_watch_url,
)


class TestDetectPlatform:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.instagram.com/reel/Cx1AbC/", Platform.INSTAGRAM),
            ("https://instagr.am/p/abc", Platform.INSTAGRAM),
            ("https://www.tiktok.com/@chef/video/7234567890123456789", Platform.TIKTOK),
            ("https://vm.tiktok.com/ZMabc123/", Platform.TIKTOK),
            ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", Platform.YOUTUBE),
            ("https://youtu.be/dQw4w9WgXcQ", Platform.YOUTUBE),
            ("HTTPS://WWW.INSTAGRAM.COM/reel/abc", Platform.INSTAGRAM),
        ],
    )
    def test_known_hosts(self, url: str, expected: Platform) -> None:
        assert detect_platform(url) is expected

    def test_unknown_host(self) -> None:
        assert detect_platform("https://vimeo.com/12345") is None

    def test_empty(self) -> None:
        assert detect_platform("") is None


class TestIsShortForm:
    def test_short_form_platforms(self) -> None:
        assert is_short_form(Platform.INSTAGRAM)
        assert is_short_form(Platform.TIKTOK)
        assert not is_short_form(Platform.YOUTUBE)
        assert not is_short_form(None)


class TestParseYoutubeId:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://www.youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ?t=10",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://www.youtube.com/shorts/dQw4w9WgXcQ",
            "https://www.youtube.com/live/dQw4w9WgXcQ",
            "dQw4w9WgXcQ",
        ],
    )
    def test_supported_forms(self, url: str) -> None:
        assert parse_youtube_id(url) == "dQw4w9WgXcQ"

    def test_invalid(self) -> None:
        assert parse_youtube_id("https://www.youtube.com/feed/trending") is None


class TestParseSourceId:
    def test_instagram_reel(self) -> None:
        assert parse_source_id("https://www.instagram.com/reel/Cx1-AbC_9/?igsh=x", Platform.INSTAGRAM) == "Cx1-AbC_9"

    def test_instagram_post(self) -> None:
        assert parse_source_id("https://www.instagram.com/p/B0abc/", Platform.INSTAGRAM) == "B0abc"

    def test_tiktok_video(self) -> None:
        url = "https://www.tiktok.com/@chef/video/7234567890123456789?lang=en"
        assert parse_source_id(url, Platform.TIKTOK) == "7234567890123456789"

    def test_tiktok_short_link(self) -> None:
        assert parse_source_id("https://vm.tiktok.com/ZMabc123/", Platform.TIKTOK) == "ZMabc123"

    def test_missing_id(self) -> None:
        assert parse_source_id("https://www.instagram.com/chef/", Platform.INSTAGRAM) is None


class TestUrls:
    def test_watch_url(self) -> None:
        assert youtube_watch_url("dQw4w9WgXcQ") == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

    def test_profile_urls(self) -> None:
        assert profile_url_for(Platform.INSTAGRAM, "@chef") == "https://www.instagram.com/chef/"
        assert profile_url_for(Platform.TIKTOK, "chef") == "https://www.tiktok.com/@chef"
        assert profile_url_for(Platform.YOUTUBE, "UC123") == "https://www.youtube.com/channel/UC123"
