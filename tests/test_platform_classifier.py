"""Tests for URL platform classification and structural validation."""

from __future__ import annotations

import pytest

from linkrelay.models.models import Platform
from linkrelay.services.classifier.platform_classifier import classify, validate


class TestClassify:
    @pytest.mark.parametrize("url,expected", [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", Platform.YOUTUBE),
        ("https://youtu.be/dQw4w9WgXcQ", Platform.YOUTUBE),
        ("https://m.youtube.com/shorts/dQw4w9WgXcQ", Platform.YOUTUBE),
        ("https://www.instagram.com/reel/Cabc123/", Platform.INSTAGRAM),
        ("https://twitter.com/user/status/1234567890", Platform.TWITTER),
        ("https://x.com/user/status/1234567890", Platform.TWITTER),
        ("https://doodstream.com/d/abc123", Platform.DOODSTREAM),
        ("https://vimeo.com/12345", Platform.OTHER),
    ])
    def test_known_hosts(self, url, expected):
        assert classify(url) == expected

    def test_host_decides_not_query(self):
        assert classify("https://example.com/?next=youtube.com") == Platform.OTHER

    def test_lookalike_host_is_other(self):
        assert classify("https://notyoutube.com/watch?v=dQw4w9WgXcQ") == Platform.OTHER

    def test_host_is_case_insensitive(self):
        assert classify("https://WWW.YouTube.COM/watch?v=dQw4w9WgXcQ") == Platform.YOUTUBE

    @pytest.mark.parametrize("url", ["", "   ", "not a url", "ftp://youtube.com/x", "http://[::1"])
    def test_garbage_never_raises(self, url):
        assert classify(url) == Platform.OTHER

    def test_non_string_input(self):
        assert classify(None) == Platform.OTHER


class TestValidate:
    def test_youtube_watch_valid(self):
        result = validate("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        assert result.valid
        assert result.platform == Platform.YOUTUBE
        assert result.reason is None

    def test_youtube_embed_valid(self):
        assert validate("https://www.youtube.com/embed/dQw4w9WgXcQ").valid

    def test_youtube_without_id(self):
        result = validate("https://www.youtube.com/feed/trending")
        assert not result.valid
        assert result.reason == "Invalid YouTube video URL - no valid video ID found"

    def test_youtube_id_must_be_exactly_eleven_chars(self):
        assert not validate("https://www.youtube.com/watch?v=dQw4w9WgXcQX").valid
        assert not validate("https://youtu.be/short").valid

    @pytest.mark.parametrize("path", ["/p/Cabc123/", "/reel/Cabc123", "/tv/Cabc_-1"])
    def test_instagram_media_paths(self, path):
        assert validate("https://www.instagram.com" + path).valid

    def test_instagram_profile_rejected(self):
        result = validate("https://www.instagram.com/someone/")
        assert not result.valid
        assert result.reason == "Invalid Instagram URL - must be a post, reel, or IGTV link"

    def test_twitter_requires_numeric_status(self):
        assert validate("https://x.com/user/status/1234567890").valid
        result = validate("https://twitter.com/user/status/abc")
        assert not result.valid
        assert result.reason == "Invalid Twitter URL - must be a tweet status link"

    def test_doodstream_video_and_embed(self):
        assert validate("https://doodstream.com/d/abc123").valid
        assert validate("https://doodstream.com/e/abc123").valid
        result = validate("https://doodstream.com/about")
        assert result.reason == "Invalid Doodstream URL - must be a valid video or embed link"

    def test_other_platform_any_http_url(self):
        result = validate("https://example.org/some/video")
        assert result.valid
        assert result.platform == Platform.OTHER

    def test_non_http_scheme(self):
        result = validate("ftp://example.org/file.mp4")
        assert not result.valid
        assert result.reason == "Only HTTP and HTTPS protocols are supported"

    @pytest.mark.parametrize("url", ["", "example.org/video", "https://"])
    def test_malformed(self, url):
        result = validate(url)
        assert not result.valid
        assert result.reason == "Invalid URL format"

    def test_explicit_platform_overrides_classification(self):
        result = validate("https://example.org/video", Platform.TWITTER)
        assert not result.valid
        assert result.platform == Platform.TWITTER


class TestDocumentedExamples:
    def test_short_link_uppercase_host(self):
        assert classify("https://YOUTU.BE/abc12345678") == Platform.YOUTUBE

    def test_bare_youtube_root_reason_names_platform(self):
        result = validate("https://youtube.com/")
        assert not result.valid
        assert "YouTube" in result.reason
