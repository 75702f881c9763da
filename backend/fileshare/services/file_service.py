from __future__ import annotations

import logging
import mimetypes
import posixpath
import uuid
from datetime import datetime
from typing import BinaryIO, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from fileshare.core.errors import InternalError, NotFound, ValidationError
from fileshare.core.security import Identity, get_password_hash
from fileshare.models.file import File
from fileshare.services.access_control import (
    ManagementAction,
    UploadRequest,
    authorize_download,
    authorize_management,
    authorize_upload,
)
from fileshare.services.policy import PolicyStore
from fileshare.services.registry import FileRegistry
from fileshare.storage.base import (
    BlobNotFound,
    BlobObject,
    BlobStore,
    BlobStoreError,
    Container,
    DownloadResult,
    Location,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_NAME_LENGTH = 200


def parse_file_id(value: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise ValidationError("Invalid file ID format")


def sanitize_file_name(name: Optional[str]) -> str:
    base = posixpath.basename((name or "").replace("\\", "/")).strip()
    if base in ("", ".", ".."):
        return "file.bin"
    return base[:MAX_NAME_LENGTH]


def detect_content_type(file_name: str, declared: Optional[str] = None) -> str:
    if declared and declared != DEFAULT_CONTENT_TYPE:
        return declared
    guessed, _ = mimetypes.guess_type(file_name)
    return guessed or declared or DEFAULT_CONTENT_TYPE


def location_of(file: File) -> Location:
    return Location(container=Container.for_visibility(file.is_public), path=file.file_path)


class FileService:
    """
    Upload, download and delete orchestration across the policy store, the
    registry and the blob store.
    """

    def __init__(self, session: AsyncSession, store: BlobStore):
        self.session = session
        self.store = store
        self.registry = FileRegistry(session)

    async def upload(
        self,
        request: UploadRequest,
        stream: BinaryIO,
        identity: Optional[Identity],
        now: Optional[datetime] = None,
    ) -> File:
        policy = await PolicyStore(self.session).get()
        plan = authorize_upload(request, identity, policy, now)

        password_hash = None
        if plan.password:
            password_hash = await run_in_threadpool(get_password_hash, plan.password)

        file_name = sanitize_file_name(request.file_name)
        content_type = detect_content_type(file_name, request.content_type)
        blob = BlobObject(
            name=f"{uuid.uuid4()}-{file_name}",
            container=Container.for_visibility(plan.is_public),
            content_type=content_type,
            size=request.size,
            stream=stream,
        )
        try:
            location = await run_in_threadpool(self.store.upload, blob)
        except BlobStoreError as e:
            raise InternalError(f"Failed to upload file to storage: {e}", e)

        file = File(
            id=str(uuid.uuid4()),
            file_name=file_name,
            file_path=location.path,
            file_size=request.size,
            mime_type=content_type,
            owner_id=identity.user_id if identity else None,
            is_public=plan.is_public,
            password_hash=password_hash,
            available_from=plan.available_from,
            available_to=plan.available_to,
        )
        try:
            created = await self.registry.create(file, plan.shared_with)
        except Exception:
            await self._discard_blob(location)
            raise

        logger.info(
            "File uploaded id=%s size=%s public=%s owner=%s",
            created.id, created.file_size, created.is_public, created.owner_id,
        )
        return created

    async def _discard_blob(self, location: Location) -> None:
        try:
            await run_in_threadpool(self.store.delete, location)
        except BlobStoreError as e:
            logger.error("Failed to remove orphaned blob %s: %s", location.path, e)
        else:
            logger.warning("Removed orphaned blob %s after metadata failure", location.path)

    async def open_download(
        self,
        share_token: str,
        identity: Optional[Identity],
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[File, DownloadResult]:
        file = await self.registry.get_by_share_token(share_token)
        authorize_download(file, identity, password, now)

        try:
            result = await run_in_threadpool(self.store.download, location_of(file))
        except BlobNotFound:
            logger.error("Blob missing for file %s at %s", file.id, file.file_path)
            raise NotFound("File not found in storage")
        except BlobStoreError as e:
            raise InternalError(f"Failed to open file {file.id}: {e}", e)

        if not result.content_type:
            result.content_type = file.mime_type or DEFAULT_CONTENT_TYPE
        return file, result

    async def get_managed_file(
        self,
        file_id: str,
        identity: Optional[Identity],
        action: ManagementAction = ManagementAction.VIEW,
    ) -> File:
        file = await self.registry.get_by_id(parse_file_id(file_id))
        authorize_management(file, identity, action)
        return file

    async def delete_file(self, file_id: str, identity: Optional[Identity]) -> File:
        file = await self.get_managed_file(file_id, identity, ManagementAction.DELETE)
        try:
            await run_in_threadpool(self.store.delete, location_of(file))
        except BlobStoreError as e:
            raise InternalError(f"Failed to delete blob for file {file.id}: {e}", e)
        await self.registry.delete(file.id)
        logger.info("File deleted id=%s by user=%s", file.id, identity.user_id)
        return file
