"""
LinkRelay Owner Service — minimal registry of the users who submit links.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.errors import NotFoundError
from linkrelay.models.models import Owner
from linkrelay.schemas.schemas import OwnerCreate

logger = logging.getLogger(__name__)


class OwnerService:

    async def register_owner(self, data: OwnerCreate, db: AsyncSession) -> Owner:
        """Create an owner, or return the existing one for the same telegram id."""
        existing = await self.get_owner_by_telegram_id(data.telegram_id, db)
        if existing is not None:
            return existing

        owner = Owner(
            telegram_id=data.telegram_id,
            username=data.username,
            first_name=data.first_name,
            last_name=data.last_name,
            is_admin=data.is_admin,
        )
        db.add(owner)
        await db.commit()
        logger.info(f"Registered owner {owner.id} (telegram {owner.telegram_id})")
        return owner

    async def get_owner(self, owner_id: int, db: AsyncSession) -> Owner:
        owner = await db.get(Owner, owner_id)
        if owner is None:
            raise NotFoundError(f"User with ID {owner_id} not found")
        return owner

    async def get_owner_by_telegram_id(self, telegram_id: str, db: AsyncSession) -> Optional[Owner]:
        result = await db.execute(select(Owner).where(Owner.telegram_id == telegram_id))
        return result.scalar_one_or_none()


owner_service = OwnerService()
