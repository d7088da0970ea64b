"""
src/housekeeper.py
Periodic sweep of stale inference cache rows.
Exports: CacheSweeper
"""

import asyncio
import logging
from typing import Callable

from src.cache_store import delete_inference_older_than
from src.shared import now_ms

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Deletes inference entries older than `max_age_ms` every `interval_seconds`."""

    def __init__(
        self,
        db_path: str,
        *,
        max_age_ms: int,
        interval_seconds: float = 3600,
        now: Callable[[], int] = now_ms,
    ) -> None:
        self.db_path = db_path
        self.max_age_ms = max_age_ms
        self.interval_seconds = interval_seconds
        self.now = now

    def run_once(self) -> int:
        return delete_inference_older_than(self.db_path, self.now() - self.max_age_ms)

    async def run_forever(self) -> None:
        logger.info("Cache sweeper started.")
        try:
            while True:
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Cache sweep failed.")
                await asyncio.sleep(self.interval_seconds)
        except asyncio.CancelledError:
            logger.info("Cache sweeper cancelled.")
            raise
