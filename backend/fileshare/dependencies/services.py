from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.core.database import get_db
from fileshare.services.file_service import FileService
from fileshare.services.statistics import StatisticsRecorder
from fileshare.storage.base import BlobStore


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def get_recorder(request: Request) -> StatisticsRecorder:
    return request.app.state.recorder


async def get_file_service(
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
) -> FileService:
    return FileService(db, store)
