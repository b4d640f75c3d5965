"""
LinkRelay API — Video link routes.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.database import get_db
from linkrelay.models.models import LinkStatus, Platform
from linkrelay.schemas.schemas import (
    PaginatedVideoLinks,
    PipelineOutcomeSchema,
    SortField,
    SortOrder,
    UrlValidateRequest,
    UrlValidationSchema,
    VideoLinkCreate,
    VideoLinkFilters,
    VideoLinkSchema,
    VideoLinkUpdate,
)
from linkrelay.services.classifier import platform_classifier
from linkrelay.services.links.link_service import link_service
from linkrelay.services.pipeline.pipeline_service import RetrievalPipeline, pipeline

router = APIRouter(prefix="/links", tags=["Links"])


def get_pipeline() -> RetrievalPipeline:
    return pipeline


@router.post("", response_model=VideoLinkSchema, status_code=201)
async def create_link(data: VideoLinkCreate, db: AsyncSession = Depends(get_db)):
    """Submit a URL. The platform is classified from the URL unless given."""
    return await link_service.create(data, db)


@router.get("", response_model=PaginatedVideoLinks)
async def list_links(
    platform: Optional[Platform] = None,
    status: Optional[LinkStatus] = None,
    user_id: Optional[int] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    sort_by: SortField = SortField.CREATED_AT,
    sort_order: SortOrder = SortOrder.DESC,
    db: AsyncSession = Depends(get_db),
):
    filters = VideoLinkFilters(
        platform=platform, status=status, user_id=user_id,
        limit=limit, offset=offset, sort_by=sort_by, sort_order=sort_order,
    )
    return await link_service.query(filters, db)


@router.post("/validate", response_model=UrlValidationSchema)
async def validate_url(data: UrlValidateRequest):
    """Check a URL against the per-platform format rules without storing it."""
    result = platform_classifier.validate(data.url, data.platform)
    return UrlValidationSchema(valid=result.valid, platform=result.platform, reason=result.reason)


@router.get("/{link_id}", response_model=VideoLinkSchema)
async def get_link(link_id: int, db: AsyncSession = Depends(get_db)):
    return await link_service.get(link_id, db)


@router.patch("/{link_id}", response_model=VideoLinkSchema)
async def update_link(link_id: int, data: VideoLinkUpdate, db: AsyncSession = Depends(get_db)):
    """Apply only the supplied fields; omitted fields keep their values."""
    return await link_service.apply_update(link_id, data, db)


@router.post("/{link_id}/process", response_model=PipelineOutcomeSchema)
async def process_link(
    link_id: int,
    background_tasks: BackgroundTasks,
    wait: bool = Query(True, description="Run the pipeline before responding"),
    runner: RetrievalPipeline = Depends(get_pipeline),
    db: AsyncSession = Depends(get_db),
):
    """Run the retrieval-dispatch pipeline for a pending link.

    With ``wait=false`` the run is scheduled after the response is sent and the
    link's current status is returned; poll ``GET /links/{id}`` for progress.
    """
    link = await link_service.get(link_id, db)
    if not wait:
        background_tasks.add_task(runner.process_link, link_id)
        return PipelineOutcomeSchema(link_id=link_id, status=link.status)

    outcome = await runner.process_link(link_id)
    return PipelineOutcomeSchema(
        link_id=outcome.link_id,
        status=outcome.status,
        error=outcome.error,
        cleaned_up=outcome.cleaned_up,
        skipped=outcome.skipped,
    )
