from __future__ import annotations

import logging
import math
import os
from datetime import datetime
from typing import BinaryIO, List, Optional

from fastapi import APIRouter, Depends, File as FormFile, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from fileshare.core.database import get_db, utcnow
from fileshare.core.errors import Gone, ValidationError
from fileshare.core.security import Identity
from fileshare.dependencies.auth import get_optional_identity, require_identity
from fileshare.dependencies.services import get_file_service
from fileshare.services.access_control import EXPIRED, ManagementAction, UploadRequest, resolve_status
from fileshare.services.file_service import FileService
from fileshare.services.registry import FileRegistry
from fileshare.services.statistics import (
    DEFAULT_HISTORY_PAGE_SIZE,
    MAX_HISTORY_PAGE_SIZE,
    get_download_history,
    get_file_statistics,
)
from fileshare.schemas.file import (
    DeleteResponse,
    DownloadHistoryEntry,
    DownloadHistoryResponse,
    FileInfo,
    FileListResponse,
    FileStatisticsResponse,
    Pagination,
    PublicFileInfo,
    StatisticsInfo,
    StatusSummary,
    UploadResponse,
)
from fileshare.utils.urls import share_link

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["Files"])

SORT_FIELDS = {"createdAt": "created_at", "fileName": "file_name"}
TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


# -----------------------------
# Form helpers
# -----------------------------

def _parse_bool(value: Optional[str], name: str) -> Optional[bool]:
    if value is None or not value.strip():
        return None
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValidationError(f"{name} must be true or false")


def _parse_datetime(value: Optional[str], name: str) -> Optional[datetime]:
    if value is None or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


def _parse_emails(values: Optional[List[str]]) -> List[str]:
    emails = []
    for value in values or ():
        emails.extend(part.strip() for part in value.split(",") if part.strip())
    return emails


def _measure(stream: BinaryIO) -> int:
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


# -----------------------------
# Upload
# -----------------------------

@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    request: Request,
    file: UploadFile = FormFile(...),
    is_public: Optional[str] = Form(None, alias="isPublic"),
    password: Optional[str] = Form(None),
    available_from: Optional[str] = Form(None, alias="availableFrom"),
    available_to: Optional[str] = Form(None, alias="availableTo"),
    shared_with: Optional[List[str]] = Form(None, alias="sharedWith"),
    service: FileService = Depends(get_file_service),
    identity: Optional[Identity] = Depends(get_optional_identity),
):
    size = await run_in_threadpool(_measure, file.file)
    upload = UploadRequest(
        file_name=file.filename or "file.bin",
        size=size,
        content_type=file.content_type,
        is_public=_parse_bool(is_public, "isPublic"),
        password=password,
        available_from=_parse_datetime(available_from, "availableFrom"),
        available_to=_parse_datetime(available_to, "availableTo"),
        shared_with=_parse_emails(shared_with),
    )
    try:
        created = await service.upload(upload, file.file, identity)
    finally:
        await file.close()

    return UploadResponse(
        file=FileInfo.from_file(created, share_link=share_link(request, created.share_token)),
    )


# -----------------------------
# Owner views
# -----------------------------

@router.get("/my", response_model=FileListResponse)
async def list_my_files(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: str = Query("all", alias="status"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    order: str = Query("desc"),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(require_identity),
):
    if sort_by not in SORT_FIELDS:
        raise ValidationError("sortBy must be createdAt or fileName")
    if order.lower() not in ("asc", "desc"):
        raise ValidationError("order must be asc or desc")

    now = utcnow()
    registry = FileRegistry(db)
    files, total = await registry.get_by_owner(
        identity.user_id,
        limit=limit,
        offset=(page - 1) * limit,
        sort_by=SORT_FIELDS[sort_by],
        order=order,
        status=status_filter,
        now=now,
    )
    counts = await registry.count_by_status(identity.user_id, now)

    return FileListResponse(
        files=[FileInfo.from_file(f, now, share_link(request, f.share_token)) for f in files],
        pagination=Pagination(
            current_page=page,
            total_pages=max(1, math.ceil(total / limit)),
            total=total,
            limit=limit,
        ),
        summary=StatusSummary(
            active_files=counts["active"],
            pending_files=counts["pending"],
            expired_files=counts["expired"],
        ),
    )


@router.get("/info/{file_id}", response_model=FileInfo)
async def get_file_details(
    file_id: str,
    request: Request,
    service: FileService = Depends(get_file_service),
    identity: Identity = Depends(require_identity),
):
    f = await service.get_managed_file(file_id, identity, ManagementAction.VIEW)
    return FileInfo.from_file(f, share_link=share_link(request, f.share_token))


@router.delete("/info/{file_id}", response_model=DeleteResponse)
async def delete_file(
    file_id: str,
    service: FileService = Depends(get_file_service),
    identity: Identity = Depends(require_identity),
):
    f = await service.delete_file(file_id, identity)
    return DeleteResponse(file_id=f.id)


@router.get("/stats/{file_id}", response_model=FileStatisticsResponse)
async def get_file_stats(
    file_id: str,
    service: FileService = Depends(get_file_service),
    identity: Identity = Depends(require_identity),
):
    f = await service.get_managed_file(file_id, identity, ManagementAction.STATS)
    stats = await get_file_statistics(service.session, f.id)
    return FileStatisticsResponse(
        file_id=f.id,
        file_name=f.file_name,
        statistics=StatisticsInfo.model_validate(stats),
    )


@router.get("/download-history/{file_id}", response_model=DownloadHistoryResponse)
async def get_file_download_history(
    file_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_HISTORY_PAGE_SIZE, ge=1, le=MAX_HISTORY_PAGE_SIZE),
    service: FileService = Depends(get_file_service),
    identity: Identity = Depends(require_identity),
):
    f = await service.get_managed_file(file_id, identity, ManagementAction.HISTORY)
    result = await get_download_history(service.session, f.id, page=page, page_size=limit)
    return DownloadHistoryResponse(
        file_id=f.id,
        file_name=f.file_name,
        history=[DownloadHistoryEntry.model_validate(h) for h in result["history"]],
        pagination=Pagination(
            current_page=result["page"],
            total_pages=result["total_pages"],
            total=result["total"],
            limit=result["page_size"],
        ),
    )


# -----------------------------
# Public metadata by share token
# -----------------------------

@router.get("/{share_token}", response_model=PublicFileInfo)
async def get_shared_file_info(share_token: str, db: AsyncSession = Depends(get_db)):
    f = await FileRegistry(db).get_by_share_token(share_token)
    now = utcnow()
    if resolve_status(f, now) == EXPIRED:
        raise Gone("File has expired")
    return PublicFileInfo.from_file(f, now)
