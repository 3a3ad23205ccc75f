"""Daily NationStates dump ingestion.

This module provides the DumpIngestionPipeline class that refreshes the whole
nation cache from the gzip-compressed XML dump:

- Streams the dump to a unique transient file (never buffered in memory)
- Decompresses and pull-parses it chunk by chunk
- Upserts records in fixed-size batches, one statement per batch
- Always removes the transient file, whatever the outcome

A run is single-shot: failures are reported in the returned result and the
next scheduled (or manual) run reprocesses the entire dump. Because every
write is an upsert keyed by nation name, re-running converges the cache.
"""

from __future__ import annotations

import asyncio
import gzip
import logging
import tempfile
import uuid
import xml.etree.ElementTree as ET
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from open_letter.core.settings import settings
from open_letter.db.session import SessionLocal
from open_letter.db.time import utcnow
from open_letter.repositories.nation_cache_repo import NationCacheRepository
from open_letter.services.dump_parser import (
    NationRecord,
    NationRecordAccumulator,
    aiter_parse_events,
)

# Configure logger for this module
logger = logging.getLogger(__name__)


class DumpIngestionError(RuntimeError):
    """Raised for fatal download problems (bad status, empty body)."""


class PipelineState(Enum):
    """Stages of a single ingestion run."""

    IDLE = "idle"
    DOWNLOADING = "downloading"
    PARSING = "parsing"
    FLUSHING = "flushing"
    DRAINING = "draining"
    CLEANING_UP = "cleaning up"
    DONE = "done"


@dataclass(frozen=True)
class DumpIngestionConfig:
    """Immutable configuration for dump ingestion."""

    dump_url: str
    download_dir: Path
    batch_size: int
    chunk_size: int
    timeout_seconds: float
    user_agent: str
    flag_url_template: str


@dataclass(frozen=True)
class DumpIngestionResult:
    """Outcome reported to whoever triggered the run.

    ``count`` is the number of records actually written, so a failed run
    reports only what was flushed before the failure.
    """

    success: bool
    message: str
    count: int


@dataclass
class IngestionProgress:
    """Mutable counters for the run in progress."""

    records_flushed: int = 0
    records_skipped: int = 0
    batches_flushed: int = 0


def load_dump_ingestion_config() -> DumpIngestionConfig:
    """Build configuration object from global settings."""

    return DumpIngestionConfig(
        dump_url=settings.dump_url,
        download_dir=Path(settings.dump_download_dir or tempfile.gettempdir()),
        batch_size=max(1, settings.dump_batch_size),
        chunk_size=max(1024, settings.dump_chunk_size),
        timeout_seconds=float(settings.dump_timeout_seconds),
        user_agent=settings.ns_user_agent,
        flag_url_template=settings.ns_flag_url_template,
    )


class DumpIngestionPipeline:
    """Download, parse and upsert the daily nations dump."""

    def __init__(
        self,
        config: DumpIngestionConfig | None = None,
        *,
        session_factory: Callable[[], Session] | None = None,
        http_client: httpx.AsyncClient | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Optional configuration. If None, built from settings.
            session_factory: Callable returning a new database session. If
                None, uses the application's SessionLocal.
            http_client: Optional client used for the download. If None, a
                client is created for each run and closed afterwards.
            now: Source of the ``last_updated`` timestamp written per batch.
        """
        self.config = config or load_dump_ingestion_config()
        self._session_factory = session_factory or SessionLocal
        self._http_client = http_client
        self._now = now
        self._lock = asyncio.Lock()
        self.state = PipelineState.IDLE
        self.progress = IngestionProgress()

    @property
    def running(self) -> bool:
        """Return True while a run is in progress."""
        return self._lock.locked()

    def _set_state(self, state: PipelineState) -> None:
        if state is not self.state:
            logger.debug("Dump ingestion: %s -> %s", self.state.value, state.value)
            self.state = state

    def _transient_path(self) -> Path:
        stamp = utcnow().strftime("%Y%m%dT%H%M%S")
        return self.config.download_dir / f"nations-{stamp}-{uuid.uuid4().hex[:8]}.xml.gz"

    async def run(self) -> DumpIngestionResult:
        """Execute one complete ingestion run.

        Returns:
            The structured outcome; this method does not raise for download,
            decompression, parse or database failures.
        """
        if self._lock.locked():
            return DumpIngestionResult(False, "Dump ingestion is already running", 0)

        async with self._lock:
            self.progress = IngestionProgress()
            self._set_state(PipelineState.IDLE)
            path = self._transient_path()
            logger.info("Starting dump ingestion from %s", self.config.dump_url)

            try:
                await asyncio.wait_for(self._ingest(path), timeout=self.config.timeout_seconds)
            except TimeoutError:
                message = (
                    f"Dump ingestion timed out after {self.config.timeout_seconds:g}s "
                    f"while {self.state.value}"
                )
                logger.error(message)
                result = DumpIngestionResult(False, message, self.progress.records_flushed)
            except (
                DumpIngestionError,
                httpx.HTTPError,
                OSError,
                EOFError,
                zlib.error,
                ET.ParseError,
                SQLAlchemyError,
            ) as exc:
                message = f"Dump ingestion failed while {self.state.value}: {exc}"
                logger.error(message, exc_info=True)
                result = DumpIngestionResult(False, message, self.progress.records_flushed)
            except Exception as exc:  # noqa: BLE001 - reported as a failed run
                message = f"Dump ingestion failed while {self.state.value}: {exc}"
                logger.exception("Unexpected error during dump ingestion")
                result = DumpIngestionResult(False, message, self.progress.records_flushed)
            else:
                message = (
                    f"Processed {self.progress.records_flushed} nations "
                    f"in {self.progress.batches_flushed} batches"
                )
                if self.progress.records_skipped:
                    message += f" ({self.progress.records_skipped} malformed records skipped)"
                logger.info("Dump ingestion finished: %s", message)
                result = DumpIngestionResult(True, message, self.progress.records_flushed)
            finally:
                self._set_state(PipelineState.CLEANING_UP)
                self._cleanup(path)
                self._set_state(PipelineState.DONE)

            return result

    async def _ingest(self, path: Path) -> None:
        await self._download(path)
        await self._parse_and_load(path)

    async def _download(self, path: Path) -> None:
        self._set_state(PipelineState.DOWNLOADING)
        path.parent.mkdir(parents=True, exist_ok=True)

        client = self._http_client
        owns_client = client is None
        if client is None:
            # Per-read timeout only; the whole run is bounded by timeout_seconds.
            client = httpx.AsyncClient(timeout=httpx.Timeout(60.0), follow_redirects=True)

        written = 0
        try:
            async with client.stream(
                "GET",
                self.config.dump_url,
                headers={"User-Agent": self.config.user_agent},
            ) as response:
                if not response.is_success:
                    raise DumpIngestionError(
                        f"Dump download responded with HTTP {response.status_code}"
                    )
                with open(path, "wb") as fh:
                    async for chunk in response.aiter_bytes(chunk_size=self.config.chunk_size):
                        fh.write(chunk)
                        written += len(chunk)
        finally:
            if owns_client:
                await client.aclose()

        if written == 0:
            raise DumpIngestionError("Dump download returned an empty body")
        logger.info("Downloaded dump to %s (%d bytes)", path, written)

    async def _parse_and_load(self, path: Path) -> None:
        self._set_state(PipelineState.PARSING)
        accumulator = NationRecordAccumulator(self.config.flag_url_template)
        batch: list[NationRecord] = []

        with gzip.open(path, "rb") as stream:

            async def read_chunk() -> bytes:
                return await asyncio.to_thread(stream.read, self.config.chunk_size)

            async for event, element in aiter_parse_events(read_chunk):
                record = accumulator.feed(event, element)
                if record is None:
                    continue
                batch.append(record)
                if len(batch) >= self.config.batch_size:
                    await self._flush(batch)
                    batch = []
                    self.progress.records_skipped = accumulator.records_skipped
                    self._set_state(PipelineState.PARSING)

        self._set_state(PipelineState.DRAINING)
        self.progress.records_skipped = accumulator.records_skipped
        if batch:
            await self._flush(batch)

    async def _flush(self, batch: list[NationRecord]) -> None:
        if self.state is not PipelineState.DRAINING:
            self._set_state(PipelineState.FLUSHING)
        rows = [(record.name, record.flag_url, record.region) for record in batch]
        await asyncio.to_thread(self._write_batch, rows, self._now())
        self.progress.records_flushed += len(batch)
        self.progress.batches_flushed += 1
        logger.debug(
            "Flushed batch %d (%d nations so far)",
            self.progress.batches_flushed,
            self.progress.records_flushed,
        )

    def _write_batch(self, rows: list[tuple[str, str, str]], updated_at: datetime) -> None:
        with self._session_factory() as db:
            NationCacheRepository(db).upsert_many(rows, updated_at=updated_at)
            db.commit()

    def _cleanup(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove transient dump file %s: %s", path, exc)
        else:
            logger.debug("Removed transient dump file %s", path)


class _DumpIngestionPipelineSingleton:
    """Singleton wrapper for DumpIngestionPipeline."""

    _instance: DumpIngestionPipeline | None = None

    @classmethod
    def get_instance(cls) -> DumpIngestionPipeline:
        """Get or create the singleton DumpIngestionPipeline instance."""
        if cls._instance is None:
            cls._instance = DumpIngestionPipeline()
        return cls._instance


def get_dump_pipeline() -> DumpIngestionPipeline:
    """Return the process-wide ingestion pipeline."""
    return _DumpIngestionPipelineSingleton.get_instance()
