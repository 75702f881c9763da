import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from fileshare.core.database import get_db
from fileshare.core.errors import Conflict, Unauthorized
from fileshare.core.security import (
    Identity,
    create_access_token,
    get_password_hash,
    verify_password,
)
from fileshare.models.shared_with import SharedWith, normalize_email
from fileshare.models.user import User
from fileshare.schemas.user import LoginRequest, RegisterResponse, Token, UserCreate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _identity(user: User) -> Identity:
    return Identity(user_id=user.id, email=user.email, role=user.role)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: UserCreate, db: AsyncSession = Depends(get_db)):
    email = normalize_email(payload.email)
    result = await db.execute(
        select(User).where(or_(func.lower(User.email) == email, User.username == payload.username))
    )
    if result.scalars().first():
        raise Conflict("Email or username already registered")

    password_hash = await run_in_threadpool(get_password_hash, payload.password)
    user = User(username=payload.username, email=email, password_hash=password_hash)
    db.add(user)
    await db.flush()

    # whitelist entries created before the account existed
    pending = await db.execute(select(SharedWith).where(SharedWith.email == email, SharedWith.user_id.is_(None)))
    for entry in pending.scalars().all():
        entry.user_id = user.id
    await db.commit()
    await db.refresh(user)

    logger.info("User registered id=%s", user.id)
    return RegisterResponse(
        user=UserResponse.model_validate(user),
        access_token=create_access_token(_identity(user)),
    )


@router.post("/login", response_model=Token)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).where(func.lower(User.email) == normalize_email(payload.email)))
    user = result.scalars().first()

    if not user or not await run_in_threadpool(verify_password, payload.password, user.password_hash):
        raise Unauthorized("Incorrect email or password")

    return Token(access_token=create_access_token(_identity(user)))
