"""
LinkRelay Delivery Dispatcher — picks the bot for a link's platform and
uploads the materialized file through it.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.config import get_settings
from linkrelay.core.errors import DependencyError, FileIOError, ResourceLimitError
from linkrelay.models.models import DeliveryBot, Platform
from linkrelay.services.bots.bot_service import BotService, bot_service
from linkrelay.services.providers.telegram_client import Delivery, TelegramClient

logger = logging.getLogger(__name__)
settings = get_settings()


def format_limit(num_bytes: int) -> str:
    return f"{num_bytes / (1024 * 1024):g} MB"


class DeliveryDispatcher:
    """Raises typed errors; the pipeline turns them into a failed link."""

    def __init__(
        self,
        telegram: Optional[TelegramClient] = None,
        bots: Optional[BotService] = None,
        chat_id: Optional[str] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        self.telegram = telegram or TelegramClient()
        self.bots = bots or bot_service
        self.chat_id = chat_id or settings.telegram_chat_id
        self.max_upload_bytes = max_upload_bytes or settings.delivery_max_upload_bytes

    def check_size(self, file_path: Path) -> int:
        try:
            size = file_path.stat().st_size
        except OSError as e:
            raise FileIOError(f"Cannot read {file_path.name}: {e.strerror}") from e
        if size > self.max_upload_bytes:
            raise ResourceLimitError(
                f"File size exceeds delivery limit ({format_limit(self.max_upload_bytes)})"
            )
        return size

    async def dispatch(self, platform: Platform, file_path: Path, db: AsyncSession) -> Delivery:
        # Oversized files never reach the provider
        self.check_size(file_path)

        bot_id = await self.bots.resolve(platform, db)
        if bot_id is None:
            raise DependencyError(f"No delivery bot available for platform {platform.value}")

        bot = await db.get(DeliveryBot, bot_id)
        if bot is None:
            raise DependencyError(f"Bot with ID {bot_id} not found")
        if not bot.is_active:
            raise DependencyError(f"Bot {bot.name} is not active")
        if not self.chat_id:
            raise DependencyError("Chat ID is required for Telegram upload")

        logger.info(f"Uploading {file_path.name} via bot {bot.id} ({platform.value})")
        delivery = await self.telegram.send_document(
            bot.token, self.chat_id, file_path, username=bot.username,
        )
        delivery.bot_id = bot.id
        return delivery
