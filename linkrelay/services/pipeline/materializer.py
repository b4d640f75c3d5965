"""
LinkRelay Materializer — streams a resolved media URL to local disk ahead of
delivery, and removes it afterwards.

Bytes are written to ``<name>.part`` and renamed into place only once the
whole body has arrived, so a failed download never leaves a file that looks
complete.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from linkrelay.core.config import get_settings
from linkrelay.core.errors import FileIOError

logger = logging.getLogger(__name__)
settings = get_settings()

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_DOT_RUNS = re.compile(r"\.{2,}")
MAX_FILENAME_LENGTH = 180
PARTIAL_SUFFIX = ".part"


class EmptyBodyError(Exception):
    """The server answered 2xx but sent no bytes."""


def sanitize_filename(name: str) -> str:
    """Restrict *name* to ``[A-Za-z0-9._-]`` with no traversal sequences."""
    cleaned = _UNSAFE_CHARS.sub("_", name or "")
    cleaned = _DOT_RUNS.sub(".", cleaned).lstrip(".")
    if len(cleaned) > MAX_FILENAME_LENGTH:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and 0 < len(ext) <= 8:
            cleaned = stem[: MAX_FILENAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:MAX_FILENAME_LENGTH]
    return cleaned or "download"


@dataclass
class DownloadResult:
    success: bool
    file_path: Optional[Path] = None
    file_size: Optional[int] = None
    error: Optional[str] = None


class Materializer:

    def __init__(
        self,
        download_dir: Optional[str] = None,
        timeout: Optional[float] = None,
        chunk_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.download_dir = Path(download_dir or settings.download_dir)
        self.timeout = timeout or settings.download_timeout_seconds
        self.chunk_size = chunk_size or settings.download_chunk_size
        self._transport = transport

    def target_path(self, file_name: str) -> Path:
        path = (self.download_dir / sanitize_filename(file_name)).resolve()
        if path.parent != self.download_dir.resolve():
            raise ValueError(f"Refusing to write outside {self.download_dir}")
        return path

    # ── Download ─────────────────────────────────────────────────────────

    async def download(self, download_url: str, file_name: str) -> DownloadResult:
        """Stream *download_url* into the download dir. Never raises."""
        try:
            self.download_dir.mkdir(parents=True, exist_ok=True)
            target = self.target_path(file_name)
        except (OSError, ValueError) as e:
            return DownloadResult(success=False, error=f"Cannot prepare download path: {e}")

        partial = target.with_name(target.name + PARTIAL_SUFFIX)
        try:
            size = await self._stream_to(download_url, partial)
            partial.replace(target)
        except httpx.TimeoutException:
            self._discard(partial)
            return DownloadResult(success=False, error=f"Download timed out after {self.timeout}s")
        except httpx.HTTPStatusError as e:
            self._discard(partial)
            return DownloadResult(
                success=False, error=f"HTTP error! status: {e.response.status_code}"
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._discard(partial)
            return DownloadResult(success=False, error=f"Download request failed: {e}")
        except OSError as e:
            self._discard(partial)
            return DownloadResult(success=False, error=f"Cannot write {target.name}: {e.strerror}")
        except EmptyBodyError as e:
            self._discard(partial)
            return DownloadResult(success=False, error=str(e))

        logger.info(f"Downloaded: {target.name} ({size / 1024 / 1024:.1f} MB)")
        return DownloadResult(success=True, file_path=target, file_size=size)

    async def _stream_to(self, url: str, partial: Path) -> int:
        size = 0
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport, follow_redirects=True
        ) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(partial, "wb") as fh:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        if chunk:
                            fh.write(chunk)
                            size += len(chunk)
        if size == 0:
            raise EmptyBodyError("No response body received")
        return size

    # ── Cleanup ──────────────────────────────────────────────────────────

    async def cleanup(self, file_path: Optional[Path]) -> bool:
        """Delete a materialized file. Already absent counts as success."""
        if file_path is None:
            return True
        try:
            Path(file_path).unlink()
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.error(f"File cleanup failed for {file_path}: {e}")
            return False
        return True

    def discard_for_link(self, link_id: int) -> int:
        """Remove every file (complete or partial) materialized for *link_id*."""
        if not self.download_dir.is_dir():
            return 0
        removed = 0
        for path in self.download_dir.glob(f"{int(link_id)}_*"):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                raise FileIOError(f"Cannot remove {path.name}: {e.strerror}") from e
        return removed

    @staticmethod
    def _discard(path: Path):
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial file {path}: {e}")

