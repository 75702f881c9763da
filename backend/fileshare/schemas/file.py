from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from fileshare.core.database import utcnow
from fileshare.models.file import File
from fileshare.services.access_control import ACTIVE, as_utc, resolve_status


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class OwnerSummary(CamelModel):
    id: str
    username: str
    email: str
    role: str


class PublicFileInfo(CamelModel):
    """What anyone holding the share token may see."""

    id: str
    share_token: str
    file_name: str
    file_size: int
    mime_type: Optional[str] = None
    is_public: bool
    status: str
    has_password: bool
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

    @classmethod
    def from_file(cls, file: File, now: Optional[datetime] = None):
        return cls(
            id=file.id,
            share_token=file.share_token,
            file_name=file.file_name,
            file_size=file.file_size,
            mime_type=file.mime_type,
            is_public=file.is_public,
            status=resolve_status(file, now),
            has_password=file.has_password,
            available_from=as_utc(file.available_from),
            available_to=as_utc(file.available_to),
        )


class FileInfo(PublicFileInfo):
    hours_remaining: Optional[float] = None
    owner: Optional[OwnerSummary] = None
    shared_with: List[str] = []
    share_link: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_file(cls, file: File, now: Optional[datetime] = None, share_link: Optional[str] = None):
        now = now or utcnow()
        base = PublicFileInfo.from_file(file, now).model_dump()
        hours_remaining = None
        if base["status"] == ACTIVE and file.available_to is not None:
            remaining = (as_utc(file.available_to) - now).total_seconds() / 3600
            if remaining > 0:
                hours_remaining = round(remaining, 2)
        return cls(
            **base,
            hours_remaining=hours_remaining,
            owner=OwnerSummary.model_validate(file.owner) if file.owner is not None else None,
            shared_with=file.shared_with,
            share_link=share_link,
            created_at=as_utc(file.created_at),
        )


class UploadResponse(CamelModel):
    success: bool = True
    message: str = "File uploaded successfully"
    file: FileInfo


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total: int
    limit: int


class StatusSummary(CamelModel):
    active_files: int
    pending_files: int
    expired_files: int


class FileListResponse(CamelModel):
    files: List[FileInfo]
    pagination: Pagination
    summary: StatusSummary


class DeleteResponse(CamelModel):
    success: bool = True
    message: str = "File deleted successfully"
    file_id: str


class StatisticsInfo(CamelModel):
    download_count: int
    unique_downloaders: int
    last_downloaded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class FileStatisticsResponse(CamelModel):
    file_id: str
    file_name: str
    statistics: StatisticsInfo


class DownloaderSummary(CamelModel):
    username: str
    email: str


class DownloadHistoryEntry(CamelModel):
    id: str
    downloader: Optional[DownloaderSummary] = None
    downloaded_at: datetime
    download_completed: bool


class DownloadHistoryResponse(CamelModel):
    file_id: str
    file_name: str
    history: List[DownloadHistoryEntry]
    pagination: Pagination
