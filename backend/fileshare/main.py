import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from fileshare.core.admin_token import AdminTokenStore, rotate_admin_token_forever
from fileshare.core.config import settings
from fileshare.core.database import Base, SessionLocal, engine as default_engine, utcnow
from fileshare.core.errors import FileShareError, InternalError
from fileshare.core.rate_limit import SlidingWindowRateLimiter
from fileshare import models  # noqa: F401
from fileshare.monitoring.setup import setup_monitoring
from fileshare.routes import admin, auth, download, files
from fileshare.services.policy import PolicyStore
from fileshare.services.statistics import StatisticsRecorder
from fileshare.storage import create_blob_store
from fileshare.tasks.cleanup import cleanup_expired_files_forever

logger = logging.getLogger("fileshare")


async def _cancel(task: asyncio.Task, name: str) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("%s task cancelled", name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = app.state.engine
    try:
        async with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            logger.info("Creating database tables: %s", ", ".join(Base.metadata.tables))
            await conn.run_sync(Base.metadata.create_all)
        async with app.state.session_factory() as session:
            await PolicyStore(session).ensure_exists()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Database initialization failed: %s", e)
        raise

    if getattr(app.state, "blob_store", None) is None:
        try:
            app.state.blob_store = await run_in_threadpool(create_blob_store)
            logger.info("Blob store initialized (%s)", settings.STORAGE_BACKEND)
        except Exception as e:
            logger.error("Blob store initialization failed: %s", e)
            raise

    recorder = StatisticsRecorder(app.state.session_factory, maxsize=settings.STATS_QUEUE_SIZE)
    recorder.start()
    app.state.recorder = recorder

    background = {}
    if settings.ADMIN_TOKEN_ROTATE_SECONDS > 0:
        background["Admin token rotation"] = asyncio.create_task(
            rotate_admin_token_forever(app.state.admin_tokens, settings.ADMIN_TOKEN_ROTATE_SECONDS)
        )
    if settings.CLEANUP_INTERVAL_SECONDS > 0:
        background["Cleanup"] = asyncio.create_task(
            cleanup_expired_files_forever(
                app.state.session_factory, app.state.blob_store, settings.CLEANUP_INTERVAL_SECONDS
            )
        )
        logger.info("Background cleanup task started")

    yield

    for name, task in background.items():
        await _cancel(task, name)
    await recorder.stop()
    logger.info("Application shutdown complete")


async def fileshare_error_handler(request: Request, exc: FileShareError):
    if isinstance(exc, InternalError):
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": details or "Invalid request"},
    )


def create_app(session_factory=None, engine=None, blob_store=None, instrument=None) -> FastAPI:
    app = FastAPI(
        title="FileShare",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.engine = engine or default_engine
    app.state.session_factory = session_factory or SessionLocal
    app.state.blob_store = blob_store
    app.state.admin_tokens = AdminTokenStore()
    app.state.cleanup_limiter = SlidingWindowRateLimiter(
        settings.CLEANUP_RATE_LIMIT, settings.CLEANUP_RATE_WINDOW_SECONDS
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "Content-Length"],
    )
    app.add_exception_handler(FileShareError, fileshare_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(auth)
    app.include_router(files)
    app.include_router(download)
    app.include_router(admin)

    setup_monitoring(app, instrument=settings.METRICS_ENABLED if instrument is None else instrument)

    @app.get("/health")
    async def health_check(request: Request):
        try:
            async with request.app.state.session_factory() as session:
                await session.execute(text("SELECT 1"))
            db_status = "ok"
        except Exception as e:
            logger.warning("Health check: database unavailable: %s", e)
            db_status = "error"

        store = request.app.state.blob_store
        try:
            if store is None:
                raise RuntimeError("blob store not initialized")
            await run_in_threadpool(store.healthcheck)
            storage_status = "ok"
        except Exception as e:
            logger.warning("Health check: storage unavailable: %s", e)
            storage_status = "error"

        return {
            "status": "running",
            "timestamp": utcnow().isoformat(),
            "database": db_status,
            "storage": storage_status,
        }

    return app


logging.basicConfig(level=settings.LOG_LEVEL.upper())

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        timeout_keep_alive=60,
        limit_concurrency=100
    )
