import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

cleanup_runs = Counter("fileshare_cleanup_runs_total", "Cleanup sweeps executed")
cleanup_files_deleted = Counter("fileshare_cleanup_files_deleted_total", "Expired files deleted by cleanup")
cleanup_failed_deletes = Counter("fileshare_cleanup_failed_deletes_total", "Expired files the sweeper could not delete")
cleanup_duration = Histogram("fileshare_cleanup_duration_seconds", "Duration of a cleanup sweep in seconds")

downloads_total = Counter("fileshare_downloads_total", "Recorded download attempts", ["completed"])
stats_events_dropped = Counter("fileshare_stats_events_dropped_total", "Download events dropped on a full queue")
stats_events_failed = Counter("fileshare_stats_events_failed_total", "Download events that failed to apply")


def report_cleanup(files_deleted: int, failed: int, duration: float) -> None:
    """Record cleanup metrics to Prometheus."""
    cleanup_runs.inc()
    if files_deleted:
        cleanup_files_deleted.inc(files_deleted)
    if failed:
        cleanup_failed_deletes.inc(failed)
    cleanup_duration.observe(duration)


def report_download(completed: bool) -> None:
    downloads_total.labels(completed="true" if completed else "false").inc()


def setup_monitoring(app: ASGIApp, instrument: bool = True):
    if instrument:
        Instrumentator().instrument(app).expose(app, endpoint="/api/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(
                status_code=500,
                content={"error": "internal_error", "message": "Internal server error"},
            )
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response
