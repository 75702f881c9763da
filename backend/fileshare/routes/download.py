from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from fileshare.core.security import Identity
from fileshare.dependencies.auth import get_optional_identity
from fileshare.dependencies.services import get_file_service, get_recorder
from fileshare.models.file import File
from fileshare.services.file_service import FileService
from fileshare.services.statistics import DownloadEvent, StatisticsRecorder
from fileshare.storage.base import DownloadResult
from fileshare.storage.local import CHUNK_SIZE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["Download"])


# -----------------------------
# Helpers
# -----------------------------

def _content_disposition(value: str) -> str:
    quoted = urllib.parse.quote(value, safe="")
    fallback = value.encode("latin-1", "ignore").decode("latin-1").replace('"', "")
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quoted}'


class RecordedDownload:
    """
    One streamed download of a blob. ``finish()`` hands exactly one
    DownloadEvent to the recorder and closes the blob, whether the body was
    streamed to the end, aborted midway or never started.
    """

    def __init__(
        self,
        file: File,
        result: DownloadResult,
        identity: Optional[Identity],
        recorder: StatisticsRecorder,
    ):
        self.file = file
        self.result = result
        self.identity = identity
        self.recorder = recorder
        self.sent = 0
        self.error: Optional[str] = None
        self.exhausted = False
        self.finished = False

    async def chunks(self) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await run_in_threadpool(self.result.stream.read, CHUNK_SIZE)
                if not chunk:
                    self.exhausted = True
                    break
                self.sent += len(chunk)
                yield chunk
        except (GeneratorExit, asyncio.CancelledError):
            self.error = "client disconnected"
            raise
        except Exception as e:
            self.error = str(e) or e.__class__.__name__
            logger.exception("Streaming failed for file %s after %s bytes", self.file.id, self.sent)
            raise
        finally:
            self.finish()

    def finish(self) -> None:
        if self.finished:
            return
        self.finished = True
        if not self.exhausted and self.error is None:
            self.error = "client disconnected"
        try:
            self.recorder.submit(
                DownloadEvent(
                    file_id=self.file.id,
                    downloader_id=self.identity.user_id if self.identity else None,
                    bytes_sent=self.sent,
                    expected_size=self.file.file_size,
                    error=self.error,
                )
            )
        finally:
            self.result.close()


class RecordedDownloadResponse(StreamingResponse):
    """StreamingResponse that always finishes its download, even if the body never started."""

    def __init__(self, download: RecordedDownload, **kwargs):
        super().__init__(download.chunks(), **kwargs)
        self.download = download

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.download.finish()


@router.get("/{share_token}/download")
async def download_file(
    share_token: str,
    x_file_password: Optional[str] = Header(None),
    service: FileService = Depends(get_file_service),
    recorder: StatisticsRecorder = Depends(get_recorder),
    identity: Optional[Identity] = Depends(get_optional_identity),
):
    file, result = await service.open_download(share_token, identity, x_file_password)

    headers = {
        "Content-Disposition": _content_disposition(file.file_name),
        "Content-Length": str(result.size),
        "Cache-Control": "no-store",
    }
    return RecordedDownloadResponse(
        RecordedDownload(file, result, identity, recorder),
        media_type=result.content_type,
        headers=headers,
    )
