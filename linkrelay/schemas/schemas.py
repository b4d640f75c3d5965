"""
LinkRelay API Schemas — Pydantic v2 models for request/response validation.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from linkrelay.models.models import LinkStatus, Platform


# ═══════════════════════════════════════════════════════════════════════
# Owners
# ═══════════════════════════════════════════════════════════════════════

class OwnerCreate(BaseModel):
    telegram_id: str = Field(..., min_length=1, max_length=64)
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool = False


class OwnerSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    telegram_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_admin: bool
    created_at: datetime
    updated_at: datetime


# ═══════════════════════════════════════════════════════════════════════
# Video links
# ═══════════════════════════════════════════════════════════════════════

class VideoLinkCreate(BaseModel):
    user_id: int
    url: str = Field(..., min_length=1, max_length=4096)
    platform: Optional[Platform] = None  # classified from the URL when omitted


class VideoLinkUpdate(BaseModel):
    """Partial update. Only fields present in ``model_fields_set`` are applied,
    so an explicit ``null`` clears a column while an omitted key leaves it alone."""

    status: Optional[LinkStatus] = None
    title: Optional[str] = None
    thumbnail_url: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    error_message: Optional[str] = None
    telegram_bot_id: Optional[int] = None
    telegram_file_id: Optional[str] = None
    telegram_message_link: Optional[str] = None
    downloaded_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None

    def supplied(self) -> dict:
        return self.model_dump(exclude_unset=True)


class VideoLinkSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    url: str
    platform: Platform
    status: LinkStatus
    title: Optional[str] = None
    thumbnail_url: Optional[str] = None
    file_size: Optional[int] = None
    duration: Optional[int] = None
    error_message: Optional[str] = None
    telegram_bot_id: Optional[int] = None
    telegram_file_id: Optional[str] = None
    telegram_message_link: Optional[str] = None
    downloaded_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SortField(str, Enum):
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"
    TITLE = "title"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class VideoLinkFilters(BaseModel):
    platform: Optional[Platform] = None
    status: Optional[LinkStatus] = None
    user_id: Optional[int] = None
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)
    sort_by: SortField = SortField.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC


class PaginatedVideoLinks(BaseModel):
    data: List[VideoLinkSchema]
    total: int
    limit: int
    offset: int


class UrlValidateRequest(BaseModel):
    url: str
    platform: Optional[Platform] = None


class UrlValidationSchema(BaseModel):
    valid: bool
    platform: Platform
    reason: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════
# Delivery bots
# ═══════════════════════════════════════════════════════════════════════

class BotCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)
    token: str = Field(..., min_length=1, max_length=256)
    username: Optional[str] = None
    is_default: bool = False
    is_active: bool = True


class DeliveryBotSchema(BaseModel):
    """Public view of a bot; the token is never echoed back."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    username: Optional[str] = None
    is_default: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AssignmentCreate(BaseModel):
    bot_id: int
    platform: Platform


class PlatformAssignmentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    bot_id: int
    platform: Platform
    created_at: datetime


class BotResolution(BaseModel):
    platform: Platform
    bot_id: Optional[int] = None


# ═══════════════════════════════════════════════════════════════════════
# Pipeline
# ═══════════════════════════════════════════════════════════════════════

class PipelineOutcomeSchema(BaseModel):
    link_id: int
    status: Optional[LinkStatus] = None
    error: Optional[str] = None
    cleaned_up: bool = True
    skipped: bool = False
