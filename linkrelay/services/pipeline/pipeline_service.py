"""
LinkRelay Retrieval-Dispatch Pipeline — one submitted link, end to end.

Pipeline (strictly sequential, no retries inside a run):
 1. Metadata fetch   extraction service → title, thumbnail, duration, download_url
 2. Materialize      stream download_url to the download dir
 3. Deliver          resolve bot for the platform, enforce size cap, sendDocument
 4. Cleanup          delete the local file (already gone counts as done)

Status is committed at each stage boundary so pollers see progress:

    PENDING → PROCESSING → DOWNLOADED → UPLOADED
                   ↘             ↘
                    FAILED (error_message names the stage)

``process_link`` never raises. Retrying a failed link, and making sure the
same link is not dispatched twice at once, belong to the caller; the status
guard in ``LinkService.transition`` turns a concurrent second run into a
skipped outcome instead of a double upload.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from linkrelay.core.database import async_session_factory
from linkrelay.core.errors import ConflictError, LinkRelayError
from linkrelay.core.metrics import PIPELINE_RUNS, STAGE_FAILURES, STAGE_SECONDS
from linkrelay.models.models import LinkStatus, VideoLink, utcnow
from linkrelay.services.links.link_service import LinkService, link_service
from linkrelay.services.pipeline.dispatcher import DeliveryDispatcher
from linkrelay.services.pipeline.materializer import Materializer
from linkrelay.services.providers.extraction_client import ExtractionClient

logger = structlog.get_logger(__name__)

NON_TERMINAL = (LinkStatus.PENDING, LinkStatus.PROCESSING, LinkStatus.DOWNLOADED)
MAX_ERROR_LENGTH = 2000


@dataclass
class PipelineOutcome:
    link_id: int
    status: Optional[LinkStatus]
    error: Optional[str] = None
    cleaned_up: bool = True
    skipped: bool = False


class RetrievalPipeline:
    """Runs the retrieval-dispatch stages for a single link."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], AsyncSession]] = None,
        extraction: Optional[ExtractionClient] = None,
        materializer: Optional[Materializer] = None,
        dispatcher: Optional[DeliveryDispatcher] = None,
        links: Optional[LinkService] = None,
    ):
        self.session_factory = session_factory or async_session_factory
        self.extraction = extraction or ExtractionClient()
        self.materializer = materializer or Materializer()
        self.dispatcher = dispatcher or DeliveryDispatcher()
        self.links = links or link_service

    # ── Main Entry Point ─────────────────────────────────────────────────

    async def process_link(self, link_id: int) -> PipelineOutcome:
        log = logger.bind(link_id=link_id)
        try:
            outcome = await self._run(link_id, log)
        except ConflictError as e:
            # Someone else moved the link; leave it to them
            log.warning("pipeline_lost_race", error=e.message)
            outcome = PipelineOutcome(link_id, status=None, error=e.message, skipped=True)
        except Exception as e:
            log.exception("pipeline_crashed")
            message = f"Pipeline error: {e}"
            status = await self._fail_in_new_session(link_id, message, log)
            PIPELINE_RUNS.labels(outcome="error").inc()
            return PipelineOutcome(link_id, status=status, error=message, cleaned_up=False)

        if outcome.skipped:
            PIPELINE_RUNS.labels(outcome="skipped").inc()
        else:
            PIPELINE_RUNS.labels(outcome=outcome.status.value).inc()
        return outcome

    async def _run(self, link_id: int, log) -> PipelineOutcome:
        async with self.session_factory() as db:
            link = await db.get(VideoLink, link_id)
            if link is None:
                log.error("link_not_found")
                return PipelineOutcome(
                    link_id, status=None,
                    error=f"Video link with id {link_id} not found", skipped=True,
                )
            if link.status != LinkStatus.PENDING:
                log.info("link_not_pending", status=link.status.value)
                return PipelineOutcome(link_id, status=link.status, skipped=True)

            # Transition: PENDING → PROCESSING
            link = await self.links.transition(
                link_id, [LinkStatus.PENDING], db, to_status=LinkStatus.PROCESSING,
            )
            log.info("pipeline_started", url=link.url, platform=link.platform.value)

            # ── Stage 1: Metadata ────────────────────────────────────
            with STAGE_SECONDS.labels(stage="metadata").time():
                metadata = await self.extraction.fetch_metadata(link.url)
            if metadata is None:
                return await self._stage_failed(
                    db, link_id, "metadata",
                    "Metadata fetch failed: extraction service returned no result", log,
                )
            link = await self.links.transition(
                link_id, [LinkStatus.PROCESSING], db,
                title=metadata.title,
                thumbnail_url=metadata.thumbnail_url,
                duration=metadata.duration,
            )

            # ── Stage 2: Materialize ─────────────────────────────────
            with STAGE_SECONDS.labels(stage="download").time():
                download = await self.materializer.download(
                    metadata.download_url, f"{link_id}_{metadata.title}.mp4",
                )
            if not download.success:
                return await self._stage_failed(
                    db, link_id, "download", f"Download failed: {download.error}", log,
                )

            try:
                # Transition: PROCESSING → DOWNLOADED
                await self.links.transition(
                    link_id, [LinkStatus.PROCESSING], db, to_status=LinkStatus.DOWNLOADED,
                    file_size=download.file_size, downloaded_at=utcnow(),
                )
                log.info("link_downloaded", file_size=download.file_size)

                # ── Stage 3: Deliver ─────────────────────────────────
                try:
                    with STAGE_SECONDS.labels(stage="upload").time():
                        delivery = await self.dispatcher.dispatch(
                            link.platform, download.file_path, db,
                        )
                except LinkRelayError as e:
                    outcome = await self._stage_failed(
                        db, link_id, "upload", f"Upload failed: {e.message}", log,
                    )
                else:
                    # Transition: DOWNLOADED → UPLOADED
                    await self.links.transition(
                        link_id, [LinkStatus.DOWNLOADED], db, to_status=LinkStatus.UPLOADED,
                        telegram_bot_id=delivery.bot_id,
                        telegram_file_id=delivery.file_id,
                        telegram_message_link=delivery.message_link,
                        uploaded_at=utcnow(),
                    )
                    log.info("link_uploaded", bot_id=delivery.bot_id, file_id=delivery.file_id)
                    outcome = PipelineOutcome(link_id, status=LinkStatus.UPLOADED)
            finally:
                # ── Stage 4: Cleanup ─────────────────────────────────
                cleaned_up = await self.materializer.cleanup(download.file_path)
                if not cleaned_up:
                    STAGE_FAILURES.labels(stage="cleanup").inc()
                    log.warning("cleanup_failed", file=str(download.file_path))

            outcome.cleaned_up = cleaned_up
            return outcome

    # ── Failure handling ─────────────────────────────────────────────────

    async def _stage_failed(
        self, db: AsyncSession, link_id: int, stage: str, message: str, log
    ) -> PipelineOutcome:
        STAGE_FAILURES.labels(stage=stage).inc()
        log.warning("stage_failed", stage=stage, error=message)
        await self.links.transition(
            link_id, NON_TERMINAL, db,
            to_status=LinkStatus.FAILED, error_message=message[:MAX_ERROR_LENGTH],
        )
        return PipelineOutcome(link_id, status=LinkStatus.FAILED, error=message)

    async def _fail_in_new_session(self, link_id: int, message: str, log) -> Optional[LinkStatus]:
        """Best effort after an unexpected error; the original error is already logged."""
        try:
            async with self.session_factory() as db:
                link = await self.links.transition(
                    link_id, NON_TERMINAL, db,
                    to_status=LinkStatus.FAILED, error_message=message[:MAX_ERROR_LENGTH],
                )
                return link.status
        except Exception as e:
            log.error("mark_failed_failed", error=str(e))
            return None

    # ── Maintenance ──────────────────────────────────────────────────────

    def discard_materialized(self, link_id: int) -> int:
        """Remove files left behind by an interrupted run of *link_id*."""
        removed = self.materializer.discard_for_link(link_id)
        if removed:
            logger.info("stale_files_removed", link_id=link_id, count=removed)
        return removed


pipeline = RetrievalPipeline()
