"""
LinkRelay Platform Classifier — maps a submitted URL to its source platform
and checks that it points at a single piece of media.

Matching is structural: the URL is parsed and only its host decides the
platform, so ``https://example.com/?next=youtube.com`` stays ``other``.
Neither function raises; bad input yields ``other`` or an invalid result.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import SplitResult, parse_qs, urlsplit

from linkrelay.models.models import Platform

ALLOWED_SCHEMES = ("http", "https")

# Ordered: first match wins
HOST_RULES: List[Tuple[Platform, Tuple[str, ...]]] = [
    (Platform.YOUTUBE, ("youtube.com", "youtu.be")),
    (Platform.INSTAGRAM, ("instagram.com",)),
    (Platform.TWITTER, ("twitter.com", "x.com")),
    (Platform.DOODSTREAM, ("doodstream.com",)),
]

_YOUTUBE_ID = re.compile(r"[A-Za-z0-9_-]{11}")
_SHORTCODE = re.compile(r"[A-Za-z0-9_-]+")
_DOOD_CODE = re.compile(r"[A-Za-z0-9]+")
_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class UrlValidation:
    valid: bool
    platform: Platform
    reason: Optional[str] = None


# ── Parsing helpers ──────────────────────────────────────────────────────

def _split(url: str) -> Optional[SplitResult]:
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parts = urlsplit(url.strip())
        # .hostname / .port raise on some malformed netlocs
        _ = parts.hostname, parts.port
    except ValueError:
        return None
    return parts


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def _segments(parts: SplitResult) -> List[str]:
    return [s for s in parts.path.split("/") if s]


def _segment_after(segments: List[str], markers: Tuple[str, ...], pattern: re.Pattern) -> bool:
    for i, seg in enumerate(segments[:-1]):
        if seg.lower() in markers and pattern.fullmatch(segments[i + 1]):
            return True
    return False


# ── Classification ───────────────────────────────────────────────────────

def classify(url: str) -> Platform:
    """Return the platform a URL belongs to, ``other`` when nothing matches."""
    parts = _split(url)
    if parts is None or parts.scheme.lower() not in ALLOWED_SCHEMES:
        return Platform.OTHER
    host = (parts.hostname or "").rstrip(".")
    if not host:
        return Platform.OTHER

    for platform, domains in HOST_RULES:
        if any(_host_matches(host, d) for d in domains):
            return platform
    return Platform.OTHER


# ── Platform-specific structure checks ───────────────────────────────────

def youtube_video_id(parts: SplitResult) -> Optional[str]:
    """Find the 11-character video id in a watch, short-link, embed or shorts URL."""
    for candidate in parse_qs(parts.query).get("v", []):
        if _YOUTUBE_ID.fullmatch(candidate):
            return candidate

    segments = _segments(parts)
    host = (parts.hostname or "").rstrip(".")
    if _host_matches(host, "youtu.be") and segments and _YOUTUBE_ID.fullmatch(segments[0]):
        return segments[0]

    for i, seg in enumerate(segments[:-1]):
        if seg.lower() in ("embed", "shorts") and _YOUTUBE_ID.fullmatch(segments[i + 1]):
            return segments[i + 1]
    return None


def _check_youtube(parts: SplitResult) -> Optional[str]:
    if youtube_video_id(parts) is None:
        return "Invalid YouTube video URL - no valid video ID found"
    return None


def _check_instagram(parts: SplitResult) -> Optional[str]:
    if not _segment_after(_segments(parts), ("p", "reel", "tv"), _SHORTCODE):
        return "Invalid Instagram URL - must be a post, reel, or IGTV link"
    return None


def _check_twitter(parts: SplitResult) -> Optional[str]:
    if not _segment_after(_segments(parts), ("status",), _DIGITS):
        return "Invalid Twitter URL - must be a tweet status link"
    return None


def _check_doodstream(parts: SplitResult) -> Optional[str]:
    if not _segment_after(_segments(parts), ("d", "e"), _DOOD_CODE):
        return "Invalid Doodstream URL - must be a valid video or embed link"
    return None


_CHECKS: Dict[Platform, Callable[[SplitResult], Optional[str]]] = {
    Platform.YOUTUBE: _check_youtube,
    Platform.INSTAGRAM: _check_instagram,
    Platform.TWITTER: _check_twitter,
    Platform.DOODSTREAM: _check_doodstream,
}


def validate(url: str, platform: Optional[Platform] = None) -> UrlValidation:
    """Structural validation of *url* for *platform* (classified when omitted)."""
    parts = _split(url)
    if parts is None or not parts.scheme:
        return UrlValidation(False, platform or Platform.OTHER, "Invalid URL format")
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return UrlValidation(
            False, platform or Platform.OTHER,
            "Only HTTP and HTTPS protocols are supported",
        )
    if not parts.hostname:
        return UrlValidation(False, platform or Platform.OTHER, "Invalid URL format")

    platform = platform or classify(url)
    check = _CHECKS.get(platform)
    reason = check(parts) if check else None
    if reason:
        return UrlValidation(False, platform, reason)
    return UrlValidation(True, platform)
