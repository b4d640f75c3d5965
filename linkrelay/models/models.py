"""
LinkRelay ORM Models — owners, submitted links, delivery bots and routing.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import (
    BigInteger, Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from linkrelay.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


# ═══════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════

class Platform(str, enum.Enum):
    YOUTUBE = "youtube"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    DOODSTREAM = "doodstream"
    OTHER = "other"


class LinkStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    DOWNLOADED = "downloaded"
    UPLOADED = "uploaded"
    FAILED = "failed"


# pending → processing → downloaded → uploaded
#         ↘            ↘             ↘ failed
LINK_TRANSITIONS: Dict[LinkStatus, FrozenSet[LinkStatus]] = {
    LinkStatus.PENDING: frozenset({LinkStatus.PROCESSING, LinkStatus.FAILED}),
    LinkStatus.PROCESSING: frozenset({LinkStatus.DOWNLOADED, LinkStatus.FAILED}),
    LinkStatus.DOWNLOADED: frozenset({LinkStatus.UPLOADED, LinkStatus.FAILED}),
    LinkStatus.UPLOADED: frozenset(),
    LinkStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES: FrozenSet[LinkStatus] = frozenset(
    status for status, targets in LINK_TRANSITIONS.items() if not targets
)


def can_transition(current: LinkStatus, target: LinkStatus) -> bool:
    return target in LINK_TRANSITIONS[current]


# ═══════════════════════════════════════════════════════════════════════
# Owners
# ═══════════════════════════════════════════════════════════════════════

class Owner(Base):
    """Telegram user who submits links."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    username: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    links: Mapped[List["VideoLink"]] = relationship("VideoLink", back_populates="owner", lazy="raise")


# ═══════════════════════════════════════════════════════════════════════
# Delivery bots + platform routing
# ═══════════════════════════════════════════════════════════════════════

class DeliveryBot(Base):
    __tablename__ = "telegram_bots"
    __table_args__ = (
        # At most one row may carry is_default = true
        Index(
            "uq_telegram_bots_single_default", "is_default", unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256))
    token: Mapped[str] = mapped_column(String(256), unique=True)
    username: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    assignments: Mapped[List["PlatformAssignment"]] = relationship(
        "PlatformAssignment", back_populates="bot", lazy="raise", cascade="all, delete-orphan",
    )


class PlatformAssignment(Base):
    """Routes every link of a platform to one bot."""
    __tablename__ = "bot_platforms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[int] = mapped_column(ForeignKey("telegram_bots.id"), index=True)
    platform: Mapped[Platform] = mapped_column(
        Enum(Platform, name="platform", values_callable=_enum_values), unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    bot: Mapped["DeliveryBot"] = relationship("DeliveryBot", back_populates="assignments")


# ═══════════════════════════════════════════════════════════════════════
# Submitted links
# ═══════════════════════════════════════════════════════════════════════

class VideoLink(Base):
    __tablename__ = "video_links"
    __table_args__ = (
        Index("ix_video_links_status", "status"),
        Index("ix_video_links_platform", "platform"),
        Index("ix_video_links_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    url: Mapped[str] = mapped_column(Text)
    platform: Mapped[Platform] = mapped_column(
        Enum(Platform, name="platform", values_callable=_enum_values),
    )
    status: Mapped[LinkStatus] = mapped_column(
        Enum(LinkStatus, name="link_status", values_callable=_enum_values),
        default=LinkStatus.PENDING,
    )

    # Filled by the metadata stage
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Filled by the materialization stage
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    downloaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Filled by the delivery stage
    telegram_bot_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("telegram_bots.id"), nullable=True, index=True,
    )
    telegram_file_id: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    telegram_message_link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    owner: Mapped["Owner"] = relationship("Owner", back_populates="links")
