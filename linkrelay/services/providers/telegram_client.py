"""
LinkRelay Telegram Client — the delivery provider (Telegram Bot API).

Two calls are used:
  - getMe          identity check, once per bot at registration
  - sendDocument   multipart upload of a materialized file to a chat
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx

from linkrelay.core.config import get_settings
from linkrelay.core.errors import DependencyError, FileIOError

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class BotIdentity:
    username: Optional[str] = None


@dataclass
class Delivery:
    file_id: str
    message_id: int
    message_link: Optional[str] = None
    bot_id: Optional[int] = None


def message_permalink(username: Optional[str], message_id: Any) -> Optional[str]:
    if not username or message_id is None:
        return None
    return f"https://t.me/{username.lstrip('@')}/{message_id}"


class TelegramClient:

    def __init__(
        self,
        api_base: Optional[str] = None,
        identity_timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = (api_base or settings.telegram_api_base).rstrip("/")
        self.identity_timeout = identity_timeout or settings.telegram_identity_timeout_seconds
        self.upload_timeout = upload_timeout or settings.telegram_upload_timeout_seconds
        self._transport = transport

    def _method_url(self, token: str, method: str) -> str:
        return f"{self.api_base}/bot{token}/{method}"

    @staticmethod
    def _decode(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as e:
            raise DependencyError(
                f"Telegram API returned invalid JSON (status {response.status_code})"
            ) from e
        if not isinstance(data, dict):
            raise DependencyError("Telegram API returned a non-object payload")
        return data

    # ── Identity check ───────────────────────────────────────────────────

    async def get_me(self, token: str) -> BotIdentity:
        """Validate a bot token. Raises DependencyError if rejected or unreachable."""
        try:
            async with httpx.AsyncClient(
                timeout=self.identity_timeout, transport=self._transport
            ) as client:
                response = await client.get(self._method_url(token, "getMe"))
        except httpx.TimeoutException as e:
            raise DependencyError(
                f"Telegram identity check timed out after {self.identity_timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise DependencyError(
                "Failed to validate bot token. Please check the token and try again."
            ) from e

        data = self._decode(response)
        if not data.get("ok"):
            raise DependencyError(
                f"Invalid bot token: {data.get('description') or 'Token validation failed'}"
            )
        result = data.get("result") or {}
        return BotIdentity(username=result.get("username"))

    # ── Upload ───────────────────────────────────────────────────────────

    async def send_document(
        self,
        token: str,
        chat_id: str,
        file_path: Path,
        username: Optional[str] = None,
    ) -> Delivery:
        """Upload *file_path* to *chat_id*. Raises DependencyError on any provider failure."""
        try:
            handle = open(file_path, "rb")
        except OSError as e:
            raise FileIOError(f"Cannot open {file_path.name} for upload: {e.strerror}") from e

        try:
            async with httpx.AsyncClient(
                timeout=self.upload_timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._method_url(token, "sendDocument"),
                    data={"chat_id": chat_id},
                    files={"document": (file_path.name, handle, "application/octet-stream")},
                )
        except httpx.TimeoutException as e:
            raise DependencyError(f"Telegram upload timed out after {self.upload_timeout}s") from e
        except httpx.HTTPError as e:
            raise DependencyError(f"Telegram API unreachable: {e}") from e
        finally:
            handle.close()

        data = self._decode(response)
        if not data.get("ok"):
            raise DependencyError(data.get("description") or "Telegram API request failed")
        if not response.is_success:
            raise DependencyError(f"Telegram API error! status: {response.status_code}")

        result = data.get("result")
        if not isinstance(result, dict):
            raise DependencyError("No result received from Telegram API")

        file_id = (
            (result.get("document") or {}).get("file_id")
            or (result.get("video") or {}).get("file_id")
        )
        if not file_id:
            raise DependencyError("No file_id received from Telegram")

        message_id = result.get("message_id")
        return Delivery(
            file_id=file_id,
            message_id=message_id,
            message_link=message_permalink(username, message_id),
        )
