import asyncio
import logging
import secrets
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class AdminTokenStore:
    """Process-wide rotating bearer token for the admin routes."""

    def __init__(self, token: Optional[str] = None):
        self._lock = threading.Lock()
        self._token = token or secrets.token_hex(16)

    def current(self) -> str:
        with self._lock:
            return self._token

    def rotate(self) -> str:
        new_token = secrets.token_hex(16)
        with self._lock:
            self._token = new_token
        return new_token

    def verify(self, candidate: Optional[str]) -> bool:
        if not candidate:
            return False
        return secrets.compare_digest(candidate, self.current())


async def rotate_admin_token_forever(store: AdminTokenStore, interval_seconds: int):
    logger.warning("Admin access token (valid %ss): %s", interval_seconds, store.current())
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            token = store.rotate()
            logger.warning("New admin access token (valid %ss): %s", interval_seconds, token)
        except asyncio.CancelledError:
            logger.info("Admin token rotation cancelled")
            raise
