import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from fileshare.core.database import utcnow
from fileshare.core.errors import InternalError
from fileshare.monitoring.setup import report_cleanup
from fileshare.services.file_service import location_of
from fileshare.services.registry import FileRegistry
from fileshare.storage.base import BlobStore, BlobStoreError

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    found: int = 0
    deleted: int = 0
    failed: int = 0
    deleted_ids: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"found": self.found, "deleted": self.deleted, "failed": self.failed}


async def sweep_expired_files(
    session: AsyncSession,
    store: BlobStore,
    now: Optional[datetime] = None,
) -> CleanupReport:
    """
    Deletes every file whose availability window has ended. A row is only
    removed once its blob is gone; a missing blob counts as gone. Per-file
    failures are logged and the sweep moves on.
    """
    started = time.monotonic()
    registry = FileRegistry(session)
    expired = await registry.list_expired(now or utcnow())
    report = CleanupReport(found=len(expired))

    for f in expired:
        try:
            await run_in_threadpool(store.delete, location_of(f))
        except BlobStoreError as e:
            report.failed += 1
            logger.error("Failed to delete blob for expired file %s (%s): %s", f.id, f.file_path, e)
            continue

        try:
            removed = await registry.delete(f.id)
        except InternalError as e:
            report.failed += 1
            logger.error("Failed to delete row for expired file %s: %s", f.id, e.message)
            continue

        if removed:
            report.deleted += 1
            report.deleted_ids.append(f.id)
        else:
            logger.info("Expired file %s was already removed", f.id)

    duration = time.monotonic() - started
    report_cleanup(report.deleted, report.failed, duration)
    logger.info(
        "cleanup_summary found=%s deleted=%s failed=%s duration=%.3fs",
        report.found, report.deleted, report.failed, duration,
    )
    return report


async def cleanup_expired_files_forever(session_factory, store: BlobStore, interval_seconds: int):
    logger.info("Cleanup task started: interval=%ss", interval_seconds)
    while True:
        try:
            async with session_factory() as session:
                await sweep_expired_files(session, store)
            await asyncio.sleep(interval_seconds)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled by shutdown")
            raise
        except Exception as e:
            logger.exception("Cleanup loop error: %s", e)
            await asyncio.sleep(min(60, interval_seconds))
