"""
LinkRelay Bot Service — delivery-bot directory and platform router.

Responsibilities:
  - Register bots after a live identity check against the Bot API
  - Keep at most one default bot (unset-all + set inside one transaction,
    serialized in-process by a lock and in the database by a partial
    unique index)
  - Map platforms to bots, one bot per platform
  - Resolve the bot that should deliver a given platform's links
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.errors import ConflictError, NotFoundError
from linkrelay.models.models import DeliveryBot, Platform, PlatformAssignment, utcnow
from linkrelay.schemas.schemas import BotCreate
from linkrelay.services.providers.telegram_client import TelegramClient

logger = logging.getLogger(__name__)


class BotService:
    """Manages delivery bots and routes platforms to them."""

    def __init__(self, telegram: Optional[TelegramClient] = None):
        self.telegram = telegram or TelegramClient()
        self._default_lock = asyncio.Lock()

    # ── Directory ────────────────────────────────────────────────────────

    async def register(self, data: BotCreate, db: AsyncSession) -> DeliveryBot:
        """Validate the token with getMe, then persist. Nothing is stored if the
        provider rejects the token."""
        async with self._default_lock:
            duplicate = await db.scalar(
                select(DeliveryBot.id).where(DeliveryBot.token == data.token)
            )
            if duplicate is not None:
                raise ConflictError("A bot with this token is already registered")

            identity = await self.telegram.get_me(data.token)

            bot = DeliveryBot(
                name=data.name,
                token=data.token,
                username=data.username or identity.username,
                is_default=data.is_default,
                is_active=data.is_active,
            )
            try:
                if data.is_default:
                    await self._unset_defaults(db)
                db.add(bot)
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError("Bot conflicts with an existing bot (token or default)") from e

        logger.info(f"Registered bot {bot.id} '{bot.name}' (default={bot.is_default})")
        return bot

    async def get_bot(self, bot_id: int, db: AsyncSession) -> DeliveryBot:
        bot = await db.get(DeliveryBot, bot_id)
        if bot is None:
            raise NotFoundError(f"Telegram bot with ID {bot_id} not found")
        return bot

    async def list_bots(self, db: AsyncSession) -> List[DeliveryBot]:
        result = await db.execute(
            select(DeliveryBot)
            .order_by(DeliveryBot.created_at.desc(), DeliveryBot.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def set_default(self, bot_id: int, db: AsyncSession) -> DeliveryBot:
        async with self._default_lock:
            bot = await self.get_bot(bot_id, db)
            if bot.is_default:
                return bot
            try:
                await self._unset_defaults(db)
                bot.is_default = True
                bot.updated_at = utcnow()
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ConflictError("Another default bot was set concurrently") from e

        logger.info(f"Bot {bot_id} is now the default delivery bot")
        return bot

    @staticmethod
    async def _unset_defaults(db: AsyncSession):
        await db.execute(
            update(DeliveryBot)
            .where(DeliveryBot.is_default.is_(True))
            .values(is_default=False, updated_at=utcnow())
        )

    # ── Platform routing ─────────────────────────────────────────────────

    async def assign(self, platform: Platform, bot_id: int, db: AsyncSession) -> PlatformAssignment:
        """Map *platform* to *bot_id*. Re-assigning the same pair returns the
        existing row; a platform mapped to another bot must be unassigned first."""
        await self.get_bot(bot_id, db)

        existing = await db.scalar(
            select(PlatformAssignment).where(PlatformAssignment.platform == platform)
        )
        if existing is not None:
            if existing.bot_id == bot_id:
                return existing
            raise ConflictError(
                f"Platform {platform.value} is already assigned to bot {existing.bot_id}"
            )

        assignment = PlatformAssignment(bot_id=bot_id, platform=platform)
        db.add(assignment)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError(f"Platform {platform.value} is already assigned") from e

        logger.info(f"Assigned platform {platform.value} to bot {bot_id}")
        return assignment

    async def unassign(self, platform: Platform, bot_id: int, db: AsyncSession) -> bool:
        result = await db.execute(
            delete(PlatformAssignment).where(
                PlatformAssignment.platform == platform,
                PlatformAssignment.bot_id == bot_id,
            )
        )
        await db.commit()
        removed = result.rowcount > 0
        if removed:
            logger.info(f"Unassigned platform {platform.value} from bot {bot_id}")
        return removed

    async def list_assignments(self, db: AsyncSession) -> List[PlatformAssignment]:
        result = await db.execute(
            select(PlatformAssignment).order_by(PlatformAssignment.platform)
        )
        return list(result.scalars().all())

    async def resolve(self, platform: Platform, db: AsyncSession) -> Optional[int]:
        """Platform-specific bot, else the active default bot, else None."""
        assigned = await db.scalar(
            select(PlatformAssignment.bot_id).where(PlatformAssignment.platform == platform)
        )
        if assigned is not None:
            return assigned

        return await db.scalar(
            select(DeliveryBot.id)
            .where(DeliveryBot.is_default.is_(True), DeliveryBot.is_active.is_(True))
            .limit(1)
        )


bot_service = BotService()
