"""Background task for reclaiming orphaned upload reservations."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from partyupload import config
from partyupload.blob_storage import delete_blob
from partyupload.repositories.file_repository import FileRepository
from partyupload.utils import format_timestamp

logger = logging.getLogger(__name__)


class ReservationCleaner:
    """
    Background task that periodically removes pending uploads whose writer
    never finished (for example after a crash) together with their partial blobs.
    """

    def __init__(self, interval_seconds: Optional[int] = None, timeout_seconds: Optional[int] = None):
        """
        Initialize cleaner task.

        Args:
            interval_seconds: Time between sweeps (default RESERVATION_SWEEP_INTERVAL_SECONDS)
            timeout_seconds: Age at which a reservation is orphaned
                (default UPLOAD_RESERVATION_TIMEOUT_SECONDS)
        """
        self.interval_seconds = interval_seconds or config.RESERVATION_SWEEP_INTERVAL_SECONDS
        self.timeout_seconds = timeout_seconds or config.UPLOAD_RESERVATION_TIMEOUT_SECONDS
        self.file_repo = FileRepository()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Reservation cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started reservation cleanup task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped reservation cleanup task")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await run_in_threadpool(self.cleanup_cycle)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in reservation cleanup task: {e}", exc_info=True)

    def cleanup_cycle(self) -> int:
        """
        Execute one sweep.

        Returns:
            Number of reservations reclaimed
        """
        cutoff = format_timestamp(datetime.now(timezone.utc) - timedelta(seconds=self.timeout_seconds))
        orphans = self.file_repo.purge_stale_reservations(cutoff)

        if not orphans:
            logger.debug("No orphaned reservations to clean")
            return 0

        for event_id, storage_key in orphans:
            delete_blob(event_id, storage_key)

        logger.info(f"Reservation cleanup cycle complete: {len(orphans)} reclaimed")
        return len(orphans)
