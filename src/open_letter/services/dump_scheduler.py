"""Background refresh of the nation cache from the daily dump.

This module provides the DumpRefreshWorker class that re-runs the ingestion
pipeline on a fixed interval for as long as the application is up. Each run
is independent; a failed run is simply retried at the next interval.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

from open_letter.core.settings import settings
from open_letter.services.dump_ingest import DumpIngestionPipeline, get_dump_pipeline

# Configure logger for this module
logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0


class DumpRefreshWorker:
    """Periodically runs the dump ingestion pipeline."""

    def __init__(
        self,
        pipeline: DumpIngestionPipeline | None = None,
        interval_seconds: float | None = None,
        initial_delay_seconds: float | None = None,
    ) -> None:
        """Initialize the refresh worker.

        Args:
            pipeline: Optional pipeline instance. If None, uses the global pipeline.
            interval_seconds: Delay between runs. If None, derived from settings.
            initial_delay_seconds: Delay before the first run. If None, taken
                from settings, falling back to one full interval.
        """
        self.pipeline = pipeline or get_dump_pipeline()
        if interval_seconds is None:
            interval_seconds = settings.dump_refresh_interval_hours * SECONDS_PER_HOUR
        self.interval_seconds = max(1.0, float(interval_seconds))
        if initial_delay_seconds is None:
            initial_delay_seconds = settings.dump_refresh_initial_delay_seconds
        if initial_delay_seconds is None:
            initial_delay_seconds = self.interval_seconds
        self.initial_delay_seconds = max(0.0, float(initial_delay_seconds))
        self.runs = 0
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background refresh loop."""

        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background refresh loop, abandoning any run in progress."""

        if self._task is None:
            return

        self._stopping.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _wait(self, seconds: float) -> bool:
        """Sleep until ``seconds`` pass or stop is requested; True means keep going."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except TimeoutError:
            return True
        return False

    async def _run(self) -> None:
        if self.initial_delay_seconds > 0 and not await self._wait(self.initial_delay_seconds):
            return

        while not self._stopping.is_set():
            try:
                result = await self.pipeline.run()
            except Exception as e:  # noqa: BLE001 - the next interval retries
                logger.error("Scheduled dump refresh raised: %s", e, exc_info=True)
            else:
                if result.success:
                    logger.info("Scheduled dump refresh succeeded: %s", result.message)
                else:
                    logger.warning("Scheduled dump refresh failed: %s", result.message)
            self.runs += 1

            if not await self._wait(self.interval_seconds):
                return
