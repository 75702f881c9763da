"""
Download history and per-file statistics.

The download route hands a ``DownloadEvent`` to the ``StatisticsRecorder``
once the response body has been streamed (or aborted). The recorder queues it
and a single background worker applies it: one history row per event, and
for completed downloads of owned files relative counter updates on
``file_statistics``. Nothing here is awaited by the client-facing response.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.core.database import utcnow
from fileshare.core.errors import InternalError, NotFound
from fileshare.models.download_history import DownloadHistory
from fileshare.models.file_statistics import FileStatistics
from fileshare.monitoring.setup import report_download, stats_events_dropped, stats_events_failed

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_PAGE_SIZE = 50
MAX_HISTORY_PAGE_SIZE = 100


@dataclass
class DownloadEvent:
    file_id: str
    downloader_id: Optional[str]
    bytes_sent: int
    expected_size: int
    error: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def completed(self) -> bool:
        return self.error is None and self.bytes_sent == self.expected_size


class StatisticsRecorder:
    """
    Bounded hand-off between download responses and the statistics tables.

    ``submit`` never blocks. Each accepted event is applied exactly once by
    the worker; a failure is logged and the event is discarded.
    """

    def __init__(self, session_factory, maxsize: int = 10000):
        self._session_factory = session_factory
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run(), name="statistics-recorder")
            logger.info("Statistics recorder started")

    async def stop(self) -> None:
        if self._worker is None:
            return
        await self.drain()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            logger.info("Statistics recorder stopped")
        self._worker = None

    async def drain(self) -> None:
        """Waits until every queued event has been applied."""
        await self._queue.join()

    def submit(self, event: DownloadEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            stats_events_dropped.inc()
            logger.error(
                "Statistics queue full, dropping download event file=%s completed=%s",
                event.file_id, event.completed,
            )
            return False
        return True

    async def _run(self):
        while True:
            event = await self._queue.get()
            try:
                await self.apply(event)
            except Exception as e:
                stats_events_failed.inc()
                logger.exception("Failed to record download for file %s: %s", event.file_id, e)
            finally:
                self._queue.task_done()

    async def apply(self, event: DownloadEvent) -> None:
        completed = event.completed
        async with self._session_factory() as session:
            try:
                await record_download(session, event)
                await session.commit()
            except SQLAlchemyError:
                await session.rollback()
                raise
        report_download(completed)


async def record_download(session: AsyncSession, event: DownloadEvent) -> None:
    """
    Writes the history row and bumps counters inside the caller's
    transaction. Counters only move for completed downloads of files that
    have statistics (owned files); updates are relative so concurrent
    downloads never overwrite each other.
    """
    completed = event.completed
    session.add(
        DownloadHistory(
            file_id=event.file_id,
            downloader_id=event.downloader_id,
            downloaded_at=event.occurred_at,
            download_completed=completed,
        )
    )
    await session.flush()

    if not completed:
        return

    res = await session.execute(
        update(FileStatistics)
        .where(FileStatistics.file_id == event.file_id)
        .values(
            download_count=FileStatistics.download_count + 1,
            last_downloaded_at=event.occurred_at,
            updated_at=utcnow(),
        )
    )
    if res.rowcount == 0:
        # anonymous upload, no statistics row
        return

    if event.downloader_id is None:
        return

    completed_before = (
        await session.execute(
            select(func.count())
            .select_from(DownloadHistory)
            .where(
                DownloadHistory.file_id == event.file_id,
                DownloadHistory.downloader_id == event.downloader_id,
                DownloadHistory.download_completed.is_(True),
            )
        )
    ).scalar_one()
    if completed_before == 1:
        await session.execute(
            update(FileStatistics)
            .where(FileStatistics.file_id == event.file_id)
            .values(unique_downloaders=FileStatistics.unique_downloaders + 1)
        )


# -----------------------------
# Read side
# -----------------------------

async def get_file_statistics(session: AsyncSession, file_id: str) -> FileStatistics:
    res = await session.execute(
        select(FileStatistics)
        .where(FileStatistics.file_id == str(file_id))
        .execution_options(populate_existing=True)
    )
    stats = res.scalars().first()
    if stats is None:
        raise NotFound("Statistics data not found")
    return stats


async def get_download_history(
    session: AsyncSession,
    file_id: str,
    page: int = 1,
    page_size: int = DEFAULT_HISTORY_PAGE_SIZE,
) -> Dict[str, Any]:
    page = max(page, 1)
    if page_size < 1:
        page_size = DEFAULT_HISTORY_PAGE_SIZE
    page_size = min(page_size, MAX_HISTORY_PAGE_SIZE)

    try:
        total = (
            await session.execute(
                select(func.count()).select_from(DownloadHistory).where(DownloadHistory.file_id == str(file_id))
            )
        ).scalar_one()
        res = await session.execute(
            select(DownloadHistory)
            .where(DownloadHistory.file_id == str(file_id))
            .order_by(DownloadHistory.downloaded_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
    except SQLAlchemyError as e:
        raise InternalError(f"Failed to retrieve history: {e}", e)

    rows: List[DownloadHistory] = list(res.scalars().all())
    return {
        "history": rows,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": max(1, math.ceil(total / page_size)),
    }
