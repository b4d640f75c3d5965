"""
LinkRelay API — Delivery bot and platform routing routes.
"""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.database import get_db
from linkrelay.core.errors import NotFoundError
from linkrelay.models.models import Platform
from linkrelay.schemas.schemas import (
    AssignmentCreate,
    BotCreate,
    BotResolution,
    DeliveryBotSchema,
    PlatformAssignmentSchema,
)
from linkrelay.services.bots.bot_service import BotService, bot_service

router = APIRouter(prefix="/bots", tags=["Bots"])


def get_bot_service() -> BotService:
    return bot_service


# ── Platform routing ─────────────────────────────────────────────────────

@router.get("/assignments", response_model=List[PlatformAssignmentSchema])
async def list_assignments(
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    return await bots.list_assignments(db)


@router.post("/assignments", response_model=PlatformAssignmentSchema, status_code=201)
async def assign_platform(
    data: AssignmentCreate,
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    """Route a platform's links to a bot. A platform can have only one bot."""
    return await bots.assign(data.platform, data.bot_id, db)


@router.delete("/assignments/{platform}/{bot_id}", status_code=204)
async def unassign_platform(
    platform: Platform,
    bot_id: int,
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    if not await bots.unassign(platform, bot_id, db):
        raise NotFoundError(f"Platform {platform.value} is not assigned to bot {bot_id}")
    return Response(status_code=204)


@router.get("/resolve/{platform}", response_model=BotResolution)
async def resolve_bot(
    platform: Platform,
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    """Which bot would deliver this platform's links right now."""
    return BotResolution(platform=platform, bot_id=await bots.resolve(platform, db))


# ── Directory ────────────────────────────────────────────────────────────

@router.post("", response_model=DeliveryBotSchema, status_code=201)
async def register_bot(
    data: BotCreate,
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    """Register a bot after checking its token with the Bot API."""
    return await bots.register(data, db)


@router.get("", response_model=List[DeliveryBotSchema])
async def list_bots(
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    return await bots.list_bots(db)


@router.get("/{bot_id}", response_model=DeliveryBotSchema)
async def get_bot(
    bot_id: int,
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    return await bots.get_bot(bot_id, db)


@router.post("/{bot_id}/default", response_model=DeliveryBotSchema)
async def set_default_bot(
    bot_id: int,
    bots: BotService = Depends(get_bot_service),
    db: AsyncSession = Depends(get_db),
):
    return await bots.set_default(bot_id, db)
