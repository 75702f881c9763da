import logging
import secrets

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fileshare.core.config import settings
from fileshare.core.database import get_db, utcnow
from fileshare.core.errors import Forbidden, RateLimited
from fileshare.dependencies.auth import require_admin_token
from fileshare.dependencies.services import get_blob_store
from fileshare.schemas.policy import CleanupResponse, PolicyResponse, PolicyUpdate
from fileshare.services.policy import PolicyStore
from fileshare.storage.base import BlobStore
from fileshare.tasks.cleanup import sweep_expired_files

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin_token)],
)


@router.get("/policy", response_model=PolicyResponse)
async def get_policy(db: AsyncSession = Depends(get_db)):
    policy = await PolicyStore(db).get()
    return PolicyResponse(**policy.to_dict())


@router.patch("/policy", response_model=PolicyResponse)
async def update_policy(payload: PolicyUpdate, db: AsyncSession = Depends(get_db)):
    policy = await PolicyStore(db).update(payload.model_dump(exclude_none=True))
    return PolicyResponse(**policy.to_dict())


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_expired(
    request: Request,
    x_cron_secret: str = Header(""),
    db: AsyncSession = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    limiter = request.app.state.cleanup_limiter
    if not limiter.acquire():
        retry_after = limiter.retry_after()
        raise RateLimited(
            "Too many cleanup requests",
            extra={"retryAfterSeconds": round(retry_after, 1)},
        )

    expected = settings.CLEANUP_SECRET
    if not expected or not x_cron_secret or not secrets.compare_digest(x_cron_secret, expected):
        raise Forbidden("Invalid or missing X-Cron-Secret")

    report = await sweep_expired_files(db, store)
    logger.info("Manual cleanup finished: %s", report.to_dict())
    return CleanupResponse(**report.to_dict(), timestamp=utcnow().isoformat())
