"""
LinkRelay Extraction Client — resolves a source URL into a direct media URL
plus descriptive metadata via the external extraction ("leech") service.

Request:   POST {extraction_api_url}  {"url": ...}  (Bearer credential)
Response:  {"success": true, "data": {"title", "thumbnail", "duration", "download_url"}}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from linkrelay.core.config import get_settings
from linkrelay.core.errors import DependencyError

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_TITLE = "Untitled Video"


@dataclass
class VideoMetadata:
    title: str
    download_url: str
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None


def parse_metadata(payload: Any) -> VideoMetadata:
    """Validate an extraction response body. Raises DependencyError if malformed."""
    if not isinstance(payload, dict):
        raise DependencyError("Extraction service returned a non-object payload")
    if not payload.get("success"):
        raise DependencyError(payload.get("error") or "Failed to fetch video metadata")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise DependencyError("Extraction service response has no data")

    download_url = data.get("download_url")
    if not isinstance(download_url, str) or not download_url:
        raise DependencyError("Extraction service response has no download_url")

    duration = data.get("duration")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        duration = None

    title = data.get("title")
    thumbnail = data.get("thumbnail")
    return VideoMetadata(
        title=title if isinstance(title, str) and title else DEFAULT_TITLE,
        download_url=download_url,
        thumbnail_url=thumbnail if isinstance(thumbnail, str) and thumbnail else None,
        duration=int(duration) if duration is not None else None,
    )


class ExtractionClient:
    """Thin async client; ``fetch_metadata`` never raises."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url or settings.extraction_api_url
        self.api_key = api_key if api_key is not None else settings.extraction_api_key
        self.timeout = timeout or settings.extraction_timeout_seconds
        self._transport = transport

    async def fetch_metadata(self, url: str) -> Optional[VideoMetadata]:
        """Return metadata for *url*, or None on any failure (logged)."""
        try:
            return await self._request(url)
        except DependencyError as e:
            logger.error(f"Video metadata fetch failed for {url}: {e.message}")
            return None

    async def _request(self, url: str) -> VideoMetadata:
        if not self.api_key:
            raise DependencyError("Extraction API key is not configured")

        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json={"url": url}, headers=headers)
        except httpx.TimeoutException as e:
            raise DependencyError(f"Extraction service timed out after {self.timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DependencyError(f"Extraction service unreachable: {e}") from e

        if not response.is_success:
            raise DependencyError(f"Extraction service HTTP error: status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DependencyError("Extraction service returned invalid JSON") from e
        return parse_metadata(payload)
