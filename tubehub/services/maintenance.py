"""
Maintenance tasks run from the CLI.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from tubehub.core.exceptions import TubeHubException
from tubehub.database.session import Database
from tubehub.providers import ProviderRegistry
from tubehub.repositories import video_db_repository
from tubehub.utils.timestamp_utils import utcnow

logger = logging.getLogger(__name__)


async def purge_stale_uploads(
    db: Database,
    older_than_seconds: int,
    dry_run: bool = False,
    providers: Optional[ProviderRegistry] = None,
) -> List[str]:
    """
    Delete PENDING videos whose upload window closed long ago.

    A record stays PENDING only while no provider callback has arrived; once
    the upload credentials have expired the client can no longer complete it.

    Args:
        db: Database handle
        older_than_seconds: Minimum record age
        dry_run: List candidates without deleting
        providers: If given, provider upload sessions are cancelled best-effort

    Returns:
        IDs of purged (or, in dry-run mode, purgeable) videos
    """
    cutoff = utcnow() - timedelta(seconds=older_than_seconds)

    async with db.session() as session:
        stale = await video_db_repository.list_stale_pending(session, cutoff)
    candidates = [(video.id, video.provider, video.provider_upload_ref) for video in stale]

    logger.info(f"Found {len(candidates)} stale pending upload(s) created before {cutoff.isoformat()}")
    if dry_run:
        return [video_id for video_id, _, _ in candidates]

    purged = []
    for video_id, provider_name, upload_ref in candidates:
        async with db.session() as session:
            deleted = await video_db_repository.delete_pending_by_id(session, video_id)
        if not deleted:
            # A callback moved it on since the scan
            continue
        purged.append(video_id)

        if providers is not None and upload_ref:
            try:
                await providers.get(provider_name).delete_upload_session(upload_ref)
            except TubeHubException as e:
                logger.warning(f"Could not cancel {provider_name} upload session {upload_ref}: {e.message}")

    logger.info(f"Purged {len(purged)} stale pending upload(s)")
    return purged
