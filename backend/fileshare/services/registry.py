from __future__ import annotations

import logging
import secrets
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import and_, delete, func, not_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.core.database import utcnow
from fileshare.core.errors import Conflict, InternalError, NotFound, ValidationError
from fileshare.models.file import File
from fileshare.models.file_statistics import FileStatistics
from fileshare.models.shared_with import SharedWith, normalize_email
from fileshare.models.user import User
from fileshare.services.access_control import ACTIVE, EXPIRED, PENDING

logger = logging.getLogger(__name__)

SHARE_TOKEN_ATTEMPTS = 3
SORT_COLUMNS = ("created_at", "file_name")


def generate_share_token() -> str:
    return secrets.token_hex(16)


def status_clause(status: str, now: datetime):
    pending = and_(File.available_from.is_not(None), File.available_from > now)
    expired = and_(File.available_to.is_not(None), File.available_to < now)
    if status == PENDING:
        return pending
    if status == EXPIRED:
        return expired
    if status == ACTIVE:
        return and_(not_(pending), not_(expired))
    raise ValidationError(f"Unknown status filter: {status}")


class FileRegistry:
    """Durable storage of file metadata and its whitelist/statistics rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, file: File, shared_with: Sequence[str] = ()) -> File:
        """
        Persists ``file``, its whitelist entries and, for owned files, a
        zero-valued statistics row in one transaction. A share-token clash
        is retried with a fresh token.
        """
        if not file.id:
            file.id = str(uuid.uuid4())
        emails = []
        for email in shared_with:
            email = normalize_email(email)
            if email and email not in emails:
                emails.append(email)

        for attempt in range(1, SHARE_TOKEN_ATTEMPTS + 1):
            if not file.share_token or attempt > 1:
                file.share_token = generate_share_token()
            try:
                user_ids = await self._user_ids_by_email(emails)
                self.session.add(file)
                for email in emails:
                    self.session.add(SharedWith(file_id=file.id, email=email, user_id=user_ids.get(email)))
                if file.owner_id is not None:
                    self.session.add(FileStatistics(file_id=file.id, download_count=0, unique_downloaders=0))
                await self.session.commit()
                return await self.get_by_id(file.id)
            except IntegrityError as e:
                await self.session.rollback()
                if "share_token" not in str(e.orig):
                    raise InternalError(f"Failed to create file record: {e}", e)
                logger.warning("Share token collision on attempt %s/%s", attempt, SHARE_TOKEN_ATTEMPTS)
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise InternalError(f"Failed to create file record: {e}", e)

        raise Conflict("Could not allocate a unique share token")

    async def _user_ids_by_email(self, emails: Sequence[str]) -> Dict[str, str]:
        if not emails:
            return {}
        res = await self.session.execute(
            select(User.id, User.email).where(func.lower(User.email).in_(list(emails)))
        )
        return {normalize_email(email): user_id for user_id, email in res.all()}

    async def _one(self, *criteria) -> Optional[File]:
        try:
            res = await self.session.execute(
                select(File).where(*criteria).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as e:
            raise InternalError(f"Failed to retrieve file: {e}", e)
        return res.scalars().first()

    async def get_by_id(self, file_id: str) -> File:
        file = await self._one(File.id == str(file_id))
        if file is None:
            raise NotFound("File not found")
        return file

    async def get_by_share_token(self, token: str) -> File:
        file = await self._one(File.share_token == token)
        if file is None:
            raise NotFound("File not found")
        return file

    async def get_by_owner(
        self,
        owner_id: str,
        limit: int = 20,
        offset: int = 0,
        sort_by: str = "created_at",
        order: str = "desc",
        status: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[File], int]:
        conditions = [File.owner_id == str(owner_id)]
        if status and status != "all":
            conditions.append(status_clause(status, now or utcnow()))

        if sort_by not in SORT_COLUMNS:
            raise ValidationError(f"Unsupported sort field: {sort_by}")
        col = func.lower(File.file_name) if sort_by == "file_name" else File.created_at
        primary = col.asc() if order.lower() == "asc" else col.desc()

        try:
            total = (
                await self.session.execute(select(func.count()).select_from(File).where(*conditions))
            ).scalar_one()
            res = await self.session.execute(
                select(File)
                .where(*conditions)
                .order_by(primary, File.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
        except SQLAlchemyError as e:
            raise InternalError(f"Failed to retrieve files: {e}", e)
        return list(res.scalars().all()), total

    async def count_by_status(self, owner_id: str, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or utcnow()
        summary = {}
        for status in (ACTIVE, PENDING, EXPIRED):
            stmt = (
                select(func.count())
                .select_from(File)
                .where(File.owner_id == str(owner_id), status_clause(status, now))
            )
            summary[status] = (await self.session.execute(stmt)).scalar_one()
        return summary

    async def delete(self, file_id: str) -> bool:
        """Removes the row; statistics, history and whitelist rows cascade."""
        try:
            res = await self.session.execute(delete(File).where(File.id == str(file_id)))
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise InternalError(f"Failed to delete file {file_id}: {e}", e)
        return res.rowcount > 0

    async def list_expired(self, now: Optional[datetime] = None) -> List[File]:
        now = now or utcnow()
        res = await self.session.execute(
            select(File).where(File.available_to.is_not(None), File.available_to < now)
        )
        return list(res.scalars().all())
