"""
State Reconciler - applies normalized provider events to video records.

Lifecycle: PENDING -> PROCESSING -> READY, with failure and cancellation
events deleting records that have not reached READY. Events may arrive in
any order and any number of times; each handler re-reads the current row and
writes through a status-guarded UPDATE/DELETE, so every ordering converges.

Provider detail lookups happen outside the database transaction. They are
best-effort: a failed lookup never blocks the PROCESSING transition, but
READY is only written with a playback reference in hand.
"""
import logging
import time
from typing import Awaitable, Callable, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from tubehub.core.exceptions import ConflictException, UpstreamException
from tubehub.core.logging import log_operation_complete, log_operation_error, log_operation_start
from tubehub.database.models.video import Video, VideoStatus
from tubehub.database.session import Database
from tubehub.models.domain import (
    AssetDetail,
    EventKind,
    FAILURE_KINDS,
    NormalizedEvent,
    ReconcileOutcome,
    ReconcileResult,
)
from tubehub.providers.base import ProviderAdapter
from tubehub.repositories import video_db_repository, webhook_delivery_db_repository
from tubehub.utils.timestamp_utils import floor_seconds

logger = logging.getLogger(__name__)

# Events whose primary key is the upload session
UPLOAD_KEYED_KINDS = frozenset({
    EventKind.UPLOAD_COMPLETED,
    EventKind.UPLOAD_FAILED,
    EventKind.UPLOAD_CANCELLED,
})

ReadyHook = Callable[[str], Awaitable[None]]


class DetailLookup:
    """Result of the best-effort provider detail fetch."""

    def __init__(self, detail: Optional[AssetDetail] = None, attempted: bool = False):
        self.detail = detail
        self.attempted = attempted

    @property
    def unreachable(self) -> bool:
        return self.attempted and self.detail is None


class StateReconciler:
    """Applies one provider's normalized events to the record store."""

    def __init__(
        self,
        db: Database,
        adapter: ProviderAdapter,
        on_ready: Optional[ReadyHook] = None,
    ):
        self.db = db
        self.adapter = adapter
        self.on_ready = on_ready

    async def apply(self, event: NormalizedEvent) -> ReconcileResult:
        """
        Apply one event in a single transaction.

        The delivery is recorded in the idempotency ledger in the same
        transaction as the transition, except for DEFERRED outcomes, which
        the provider is expected to redeliver.
        """
        if event.kind is EventKind.UNHANDLED:
            return ReconcileResult(ReconcileOutcome.IGNORED, detail=f"unhandled event {event.raw_type}")

        start_time = time.time()
        context = event.log_context()
        log_operation_start(
            logger=__name__,
            function="apply",
            operation="reconcile",
            message=f"Reconciling {event.kind.value}",
            context=context,
        )

        try:
            result = await self._apply_once(event)
        except Exception as e:
            log_operation_error(
                logger=__name__,
                function="apply",
                operation="reconcile",
                error=e,
                message=f"Failed to reconcile {event.kind.value}",
                context=context,
            )
            raise

        if result.outcome is ReconcileOutcome.APPLIED and result.status == VideoStatus.READY.value:
            await self._run_ready_hook(result.video_id)

        context.update({
            "outcome": result.outcome.value,
            "video_id": result.video_id,
            "detail": result.detail,
        })
        log_operation_complete(
            logger=__name__,
            function="apply",
            operation="reconcile",
            message=f"Reconciled {event.kind.value}: {result.outcome.value}",
            context=context,
            duration=time.time() - start_time,
        )
        return result

    async def _apply_once(self, event: NormalizedEvent) -> ReconcileResult:
        lookup = await self._prefetch(event)

        try:
            async with self.db.session() as session:
                if event.delivery_id and await webhook_delivery_db_repository.exists(
                    session, event.provider, event.delivery_id
                ):
                    result = ReconcileResult(ReconcileOutcome.DUPLICATE, detail="delivery already applied")
                else:
                    result = await self._dispatch(session, event, lookup)
                    if event.delivery_id and result.outcome is not ReconcileOutcome.DEFERRED:
                        await webhook_delivery_db_repository.record(
                            session, event.provider, event.delivery_id, event.kind.value
                        )
        except ConflictException:
            result = ReconcileResult(ReconcileOutcome.DUPLICATE, detail="delivery applied concurrently")
        return result

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def _find(self, session: AsyncSession, event: NormalizedEvent) -> Optional[Video]:
        """
        Resolve the record an event refers to.

        Asset-keyed events fall back to the upload ref so an asset event that
        overtakes UPLOAD_COMPLETED still finds its record.
        """
        video = None
        if event.kind in UPLOAD_KEYED_KINDS:
            if event.upload_ref:
                video = await video_db_repository.get_by_upload_ref(session, event.upload_ref)
        else:
            if event.asset_ref:
                video = await video_db_repository.get_by_asset_ref(session, event.asset_ref)
            if video is None and event.upload_ref:
                video = await video_db_repository.get_by_upload_ref(session, event.upload_ref)

        if video is not None and video.provider != event.provider:
            logger.warning(
                f"Event from {event.provider} matched video {video.id} owned by {video.provider}; ignoring"
            )
            return None
        return video

    async def _fetch_detail_best_effort(self, asset_ref: Optional[str]) -> DetailLookup:
        """
        Fetch provider asset detail.

        Fallback value: DetailLookup with detail=None. A failure here is
        logged and never raised.
        """
        if not asset_ref:
            return DetailLookup()
        try:
            detail = await self.adapter.fetch_asset_detail(asset_ref)
        except UpstreamException as e:
            logger.warning(f"Asset detail unavailable for {asset_ref}: {e.message}")
            return DetailLookup(attempted=True)
        return DetailLookup(detail=detail, attempted=True)

    async def _prefetch(self, event: NormalizedEvent) -> DetailLookup:
        """Fetch provider detail before the transaction when the handler may need it."""
        if event.kind is EventKind.UPLOAD_COMPLETED:
            return await self._fetch_detail_best_effort(event.asset_ref)

        if event.kind is EventKind.READY and not event.payload.playback_candidates:
            found, stored_candidate = await self._stored_candidate(event)
            if found and not stored_candidate:
                return await self._fetch_detail_best_effort(event.asset_ref)

        return DetailLookup()

    async def _stored_candidate(self, event: NormalizedEvent) -> Tuple[bool, Optional[str]]:
        async with self.db.session() as session:
            video = await self._find(session, event)
        if video is None:
            return False, None
        return True, video.playback_candidate

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _dispatch(
        self,
        session: AsyncSession,
        event: NormalizedEvent,
        lookup: DetailLookup,
    ) -> ReconcileResult:
        video = await self._find(session, event)
        if video is None:
            logger.info(f"No video for {event.kind.value} (upload_ref={event.upload_ref}, asset_ref={event.asset_ref})")
            return ReconcileResult(ReconcileOutcome.NOT_FOUND, detail="no matching video")

        if event.kind is EventKind.UPLOAD_COMPLETED:
            return await self._upload_completed(session, video, event, lookup)
        if event.kind is EventKind.PROCESSING_STARTED:
            return await self._processing_started(session, video, event)
        if event.kind is EventKind.READY:
            return await self._ready(session, video, event, lookup)
        if event.kind in FAILURE_KINDS:
            return await self._failed(session, video, event)

        return ReconcileResult(ReconcileOutcome.IGNORED, video_id=video.id, detail=f"no handler for {event.kind.value}")

    async def _upload_completed(
        self,
        session: AsyncSession,
        video: Video,
        event: NormalizedEvent,
        lookup: DetailLookup,
    ) -> ReconcileResult:
        if video.status == VideoStatus.READY:
            return _noop(video, "already ready")

        detail = lookup.detail
        candidate = _first(event.payload.playback_candidates) or (detail.playback_ref if detail else None)

        changed = (
            video.status == VideoStatus.PENDING
            or video.provider_asset_ref != event.asset_ref
            or (candidate is not None and video.playback_candidate is None)
        )

        updated = await video_db_repository.mark_uploaded(
            session,
            upload_ref=video.provider_upload_ref,
            asset_ref=event.asset_ref,
            playback_candidate=candidate,
        )
        if updated is None:
            return ReconcileResult(ReconcileOutcome.NOOP, video_id=video.id, detail="record moved on concurrently")

        if detail is not None and detail.is_ready and detail.playback_ref:
            # Asset finished before this callback was processed
            promoted = await video_db_repository.mark_ready(
                session,
                video_id=updated.id,
                playback_ref=detail.playback_ref,
                duration_seconds=_duration(event, detail, updated.id),
            )
            if promoted is not None:
                return _applied(promoted, "uploaded and already ready")

        if not changed:
            return _noop(updated, "already processing")
        return _applied(updated, "uploaded")

    async def _processing_started(
        self,
        session: AsyncSession,
        video: Video,
        event: NormalizedEvent,
    ) -> ReconcileResult:
        if video.status != VideoStatus.PENDING:
            return _noop(video, f"already {video.status.value.lower()}")

        updated = await video_db_repository.mark_processing(session, video.id, event.asset_ref)
        if updated is None:
            return ReconcileResult(ReconcileOutcome.NOOP, video_id=video.id, detail="record moved on concurrently")
        return _applied(updated, "processing")

    async def _ready(
        self,
        session: AsyncSession,
        video: Video,
        event: NormalizedEvent,
        lookup: DetailLookup,
    ) -> ReconcileResult:
        if video.status == VideoStatus.READY:
            return _noop(video, "already ready")

        detail = lookup.detail
        playback_ref = (
            _first(event.payload.playback_candidates)
            or video.playback_candidate
            or (detail.playback_ref if detail else None)
        )

        if not playback_ref:
            if lookup.unreachable:
                logger.warning(f"READY for video {video.id} deferred: provider detail unreachable")
                return ReconcileResult(
                    ReconcileOutcome.DEFERRED,
                    video_id=video.id,
                    detail="playback reference unavailable, provider unreachable",
                    retryable=True,
                    status=video.status.value,
                )
            logger.warning(f"READY for video {video.id} deferred: no playback reference resolvable")
            return ReconcileResult(
                ReconcileOutcome.DEFERRED,
                video_id=video.id,
                detail="no playback reference",
                status=video.status.value,
            )

        updated = await video_db_repository.mark_ready(
            session,
            video_id=video.id,
            playback_ref=playback_ref,
            duration_seconds=_duration(event, detail, video.id),
            asset_ref=event.asset_ref,
        )
        if updated is None:
            return ReconcileResult(ReconcileOutcome.NOOP, video_id=video.id, detail="record moved on concurrently")
        return _applied(updated, "ready")

    async def _failed(
        self,
        session: AsyncSession,
        video: Video,
        event: NormalizedEvent,
    ) -> ReconcileResult:
        if video.status == VideoStatus.READY:
            logger.warning(f"Ignoring {event.kind.value} for ready video {video.id}")
            return _noop(video, "ready videos are kept")

        deleted = await video_db_repository.delete_unfinished(session, video.id)
        if not deleted:
            return ReconcileResult(ReconcileOutcome.NOT_FOUND, video_id=video.id, detail="already deleted")

        logger.info(
            f"Deleted video {video.id} after {event.kind.value}"
            + (f": {event.payload.error_message}" if event.payload.error_message else "")
        )
        return ReconcileResult(ReconcileOutcome.APPLIED, video_id=video.id, detail="deleted")

    async def _run_ready_hook(self, video_id: str) -> None:
        if self.on_ready is None:
            return
        try:
            await self.on_ready(video_id)
        except Exception as e:
            logger.warning(f"Post-ready hook failed for video {video_id}: {type(e).__name__}: {e}")


def _first(candidates) -> Optional[str]:
    for candidate in candidates or []:
        if candidate:
            return candidate
    return None


def _duration(event: NormalizedEvent, detail: Optional[AssetDetail], video_id: str) -> int:
    duration = floor_seconds(event.payload.duration_seconds)
    if duration is None and detail is not None:
        duration = floor_seconds(detail.duration_seconds)
    if duration is None:
        logger.warning(f"No duration reported for video {video_id}; storing 0")
        duration = 0
    return duration


def _applied(video: Video, detail: str) -> ReconcileResult:
    return ReconcileResult(ReconcileOutcome.APPLIED, video_id=video.id, detail=detail, status=video.status.value)


def _noop(video: Video, detail: str) -> ReconcileResult:
    return ReconcileResult(ReconcileOutcome.NOOP, video_id=video.id, detail=detail, status=video.status.value)
