"""
Shared pytest fixtures for the FileShare backend test suite.

This module provides:
- Hypothesis profiles for the access-control property tests
- A throwaway SQLite database per test (aiosqlite, schema created up front)
- A LocalBlobStore rooted in ``tmp_path``
- Helpers to create users/identities and files without going through HTTP
- The ASGI app wired to those collaborators, plus an httpx client
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("ADMIN_TOKEN_ROTATE_SECONDS", "0")
os.environ.setdefault("CLEANUP_INTERVAL_SECONDS", "0")
os.environ.setdefault("CLEANUP_SECRET", "cron-secret")

import uuid
from datetime import timedelta
from typing import Optional

import httpx
import pytest
from hypothesis import HealthCheck, settings as hypothesis_settings

from fileshare import models  # noqa: F401
from fileshare.core.database import Base, build_engine, build_session_factory, utcnow
from fileshare.core.security import ROLE_ADMIN, ROLE_USER, Identity, create_access_token
from fileshare.models.file import File
from fileshare.models.user import User
from fileshare.services.policy import PolicyStore
from fileshare.services.registry import FileRegistry
from fileshare.storage.local import LocalBlobStore

hypothesis_settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
hypothesis_settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
hypothesis_settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))

# never matches a password; these users only authenticate with minted tokens
UNUSABLE_PASSWORD_HASH = "!"


# =============================================================================
# Database / storage
# =============================================================================

@pytest.fixture
async def engine(tmp_path):
    """Provide an async engine on a fresh SQLite file with the full schema."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'fileshare-test.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        await PolicyStore(s).ensure_exists()
        yield s


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs")


# =============================================================================
# Users and files
# =============================================================================

async def create_user(session, username: str, role: str = ROLE_USER, email: Optional[str] = None) -> Identity:
    user = User(
        id=str(uuid.uuid4()),
        username=username,
        email=email or f"{username}@example.com",
        role=role,
        password_hash=UNUSABLE_PASSWORD_HASH,
    )
    session.add(user)
    await session.commit()
    return Identity(user_id=user.id, email=user.email, role=user.role)


async def create_file(session, owner: Optional[Identity] = None, shared_with=(), **fields) -> File:
    """Register a file row directly (no blob) with an active one-day window by default."""
    now = utcnow()
    values = dict(
        file_name="report.pdf",
        file_path=f"public/{uuid.uuid4()}-report.pdf",
        file_size=10,
        mime_type="application/pdf",
        owner_id=owner.user_id if owner else None,
        is_public=True,
        available_from=now - timedelta(minutes=1),
        available_to=now + timedelta(days=1),
    )
    values.update(fields)
    return await FileRegistry(session).create(File(**values), shared_with)


def auth_headers(identity: Identity) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


@pytest.fixture
def make_user(session):
    """Provide a factory creating users in the test database."""
    async def _make(username: str, role: str = ROLE_USER, email: Optional[str] = None) -> Identity:
        return await create_user(session, username, role, email)
    return _make


@pytest.fixture
def make_file(session):
    """Provide a factory registering file rows (no blob) in the test database."""
    async def _make(owner: Optional[Identity] = None, shared_with=(), **fields) -> File:
        return await create_file(session, owner, shared_with, **fields)
    return _make


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
async def alice(session) -> Identity:
    return await create_user(session, "alice")


@pytest.fixture
async def bob(session) -> Identity:
    return await create_user(session, "bob")


@pytest.fixture
async def admin(session) -> Identity:
    return await create_user(session, "root", role=ROLE_ADMIN)


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
async def app(engine, session_factory, blob_store):
    """Provide the FastAPI app with its lifespan running against the test collaborators."""
    from fileshare.main import create_app

    application = create_app(
        session_factory=session_factory,
        engine=engine,
        blob_store=blob_store,
        instrument=False,
    )
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
