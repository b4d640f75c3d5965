"""
LinkRelay Link Service — persistence and lifecycle of submitted links.

State machine per link:  PENDING → PROCESSING → DOWNLOADED → UPLOADED
                         (any non-terminal) → FAILED

UPLOADED and FAILED are terminal. Operator corrections go through
``apply_update`` and are checked against the same graph; the pipeline uses
``transition``, a conditional update that only lands if the stored status is
still the one the caller expects.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.errors import ConflictError, ContractViolationError, NotFoundError, ValidationError
from linkrelay.models.models import (
    LinkStatus, VideoLink, can_transition, utcnow,
)
from linkrelay.schemas.schemas import (
    PaginatedVideoLinks, SortField, SortOrder, VideoLinkCreate, VideoLinkFilters,
    VideoLinkSchema, VideoLinkUpdate,
)
from linkrelay.services.classifier.platform_classifier import validate
from linkrelay.services.owners.owner_service import owner_service

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    SortField.CREATED_AT: VideoLink.created_at,
    SortField.UPDATED_AT: VideoLink.updated_at,
    SortField.TITLE: VideoLink.title,
}

# Columns a caller may patch; status handled separately
PATCHABLE_FIELDS = (
    "title", "thumbnail_url", "file_size", "duration", "error_message",
    "telegram_bot_id", "telegram_file_id", "telegram_message_link",
    "downloaded_at", "uploaded_at",
)

DOWNLOADED_OR_LATER = frozenset({LinkStatus.DOWNLOADED, LinkStatus.UPLOADED, LinkStatus.FAILED})

# Set by the delivery stage, only on success
DELIVERY_FIELDS = ("telegram_bot_id", "telegram_file_id", "telegram_message_link", "uploaded_at")
# Set by the materialization stage
FILE_FIELDS = ("file_size", "downloaded_at")


def check_link_consistency(current: LinkStatus, state: Mapping[str, Any]) -> None:
    """Raise ContractViolationError if *state* (the post-update view) is contradictory."""
    status = state["status"]
    if status != current and not can_transition(current, status):
        raise ContractViolationError(
            f"Illegal status transition {current.value} → {status.value}"
        )
    for field in DELIVERY_FIELDS:
        if state.get(field) is not None and status != LinkStatus.UPLOADED:
            raise ContractViolationError(f"{field} may only be set on an uploaded link")
    if status == LinkStatus.UPLOADED and state.get("uploaded_at") is None:
        raise ContractViolationError("An uploaded link requires uploaded_at")
    for field in FILE_FIELDS:
        if state.get(field) is not None and status not in DOWNLOADED_OR_LATER:
            raise ContractViolationError(
                f"{field} is inconsistent with status {status.value}"
            )


class LinkService:
    """Creates, patches, transitions and lists video links."""

    # ── Create / read ────────────────────────────────────────────────────

    async def create(self, data: VideoLinkCreate, db: AsyncSession) -> VideoLink:
        await owner_service.get_owner(data.user_id, db)

        verdict = validate(data.url, data.platform)
        if not verdict.valid:
            raise ValidationError(verdict.reason or "Invalid URL")

        link = VideoLink(
            user_id=data.user_id,
            url=data.url,
            platform=data.platform or verdict.platform,
            status=LinkStatus.PENDING,
        )
        db.add(link)
        await db.commit()
        logger.info(f"Created link {link.id} [{link.platform.value}] for user {link.user_id}")
        return link

    async def get(self, link_id: int, db: AsyncSession) -> VideoLink:
        link = await db.get(VideoLink, link_id, populate_existing=True)
        if link is None:
            raise NotFoundError(f"Video link with id {link_id} not found")
        return link

    # ── Partial update (operator corrections) ────────────────────────────

    async def apply_update(
        self, link_id: int, data: VideoLinkUpdate, db: AsyncSession
    ) -> VideoLink:
        """Patch only the supplied fields; updated_at is always refreshed."""
        link = await self.get(link_id, db)
        supplied = data.supplied()

        if "status" in supplied and supplied["status"] is None:
            raise ContractViolationError("status cannot be cleared")

        state: Dict[str, Any] = {f: getattr(link, f) for f in PATCHABLE_FIELDS}
        state["status"] = link.status
        state.update(supplied)
        check_link_consistency(link.status, state)

        for field, value in supplied.items():
            setattr(link, field, value)
        link.updated_at = utcnow()
        await db.commit()

        logger.info(f"Updated link {link_id}: {sorted(supplied)}")
        return link

    # ── Conditional transition (pipeline) ────────────────────────────────

    async def transition(
        self,
        link_id: int,
        expected_from: Iterable[LinkStatus],
        db: AsyncSession,
        to_status: Optional[LinkStatus] = None,
        **fields: Any,
    ) -> VideoLink:
        """Apply *fields* (and *to_status*) only while the stored status is in
        *expected_from*. Raises ConflictError when another writer got there first."""
        expected = frozenset(expected_from)
        if to_status is not None:
            illegal = [s for s in expected if not can_transition(s, to_status)]
            if illegal:
                raise ContractViolationError(
                    f"Illegal status transition {illegal[0].value} → {to_status.value}"
                )
        unknown = set(fields) - set(PATCHABLE_FIELDS)
        if unknown:
            raise ContractViolationError(f"Unknown link fields: {sorted(unknown)}")

        values: Dict[str, Any] = dict(fields, updated_at=utcnow())
        if to_status is not None:
            values["status"] = to_status

        result = await db.execute(
            update(VideoLink)
            .where(VideoLink.id == link_id, VideoLink.status.in_(expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await db.rollback()
            current = await self.get(link_id, db)
            raise ConflictError(
                f"Video link {link_id} is {current.status.value}, expected one of "
                f"{sorted(s.value for s in expected)}"
            )
        await db.commit()
        return await self.get(link_id, db)

    # ── Listing ──────────────────────────────────────────────────────────

    @staticmethod
    def parse_filters(
        filters: Union[VideoLinkFilters, Mapping[str, Any], None]
    ) -> VideoLinkFilters:
        if filters is None:
            return VideoLinkFilters()
        if isinstance(filters, VideoLinkFilters):
            return filters
        try:
            return VideoLinkFilters.model_validate(dict(filters))
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid filters: {e.errors()[0]['msg']}") from e

    async def query(
        self,
        filters: Union[VideoLinkFilters, Mapping[str, Any], None],
        db: AsyncSession,
    ) -> PaginatedVideoLinks:
        """Filtered, sorted, offset-paginated listing plus the total match count."""
        f = self.parse_filters(filters)

        conditions = []
        if f.platform is not None:
            conditions.append(VideoLink.platform == f.platform)
        if f.status is not None:
            conditions.append(VideoLink.status == f.status)
        if f.user_id is not None:
            conditions.append(VideoLink.user_id == f.user_id)

        column = SORT_COLUMNS[f.sort_by]
        if f.sort_order == SortOrder.DESC:
            order = (column.desc(), VideoLink.id.desc())
        else:
            order = (column.asc(), VideoLink.id.asc())

        rows = await db.execute(
            select(VideoLink).where(*conditions).order_by(*order)
            .offset(f.offset).limit(f.limit)
        )
        links = rows.scalars().all()
        total = await db.scalar(select(func.count(VideoLink.id)).where(*conditions)) or 0

        return PaginatedVideoLinks(
            data=[VideoLinkSchema.model_validate(link) for link in links],
            total=total,
            limit=f.limit,
            offset=f.offset,
        )


link_service = LinkService()
