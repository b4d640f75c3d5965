"""
LinkRelay API — Owner routes.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.database import get_db
from linkrelay.core.errors import NotFoundError
from linkrelay.schemas.schemas import OwnerCreate, OwnerSchema
from linkrelay.services.owners.owner_service import owner_service

router = APIRouter(prefix="/owners", tags=["Owners"])


@router.post("", response_model=OwnerSchema, status_code=201)
async def register_owner(data: OwnerCreate, db: AsyncSession = Depends(get_db)):
    """Register a Telegram user. Registering the same telegram_id again returns the existing owner."""
    return await owner_service.register_owner(data, db)


@router.get("/by-telegram/{telegram_id}", response_model=OwnerSchema)
async def get_owner_by_telegram_id(telegram_id: str, db: AsyncSession = Depends(get_db)):
    owner = await owner_service.get_owner_by_telegram_id(telegram_id, db)
    if owner is None:
        raise NotFoundError(f"User with Telegram ID {telegram_id} not found")
    return owner


@router.get("/{owner_id}", response_model=OwnerSchema)
async def get_owner(owner_id: int, db: AsyncSession = Depends(get_db)):
    return await owner_service.get_owner(owner_id, db)
