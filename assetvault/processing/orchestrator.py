"""Background processing of uploaded assets.

A pool of asyncio workers drains one FIFO queue of :class:`ProcessingJob`.
Jobs for the same asset may run concurrently. They share an
:class:`AssetTracker`, a join counter over the mandatory jobs (METADATA and
THUMBNAIL). The job that brings the counter to zero decides the terminal
state exactly once:

    PENDING -> PROCESSING -> COMPLETED | FAILED

Best-effort jobs (VARIANT_SET, PREVIEW_CLIP) never affect the terminal state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from assetvault.lib import observability
from assetvault.lib.exceptions import ProcessingFailed
from assetvault.processing import generators
from assetvault.processing.jobs import (
    MANDATORY_JOBS,
    AssetRecord,
    JobType,
    ProcessingJob,
    ProcessingState,
    jobs_for,
)

if TYPE_CHECKING:
    from assetvault.config import ProcessingConfig
    from assetvault.lib.storage.manager import StorageManager
    from assetvault.processing.store import AssetStore

logger = logging.getLogger(__name__)

STATE_WRITE_ATTEMPTS = 3


class AssetTracker:
    """Join counter for one asset's mandatory jobs.

    All reads and writes happen while holding ``lock``.
    """

    def __init__(self, asset_id: str, mandatory: set[JobType]) -> None:
        self.asset_id = asset_id
        self.pending = set(mandatory)
        self.failures: dict[JobType, str] = {}
        self.started = False
        self.state = ProcessingState.PENDING
        self.lock = asyncio.Lock()

    def start(self) -> bool:
        """Return True for the first job to start."""
        if self.started:
            return False
        self.started = True
        self.state = ProcessingState.PROCESSING
        return True

    def finish(self, job_type: JobType, error: BaseException | None) -> ProcessingState | None:
        """Record a mandatory job outcome.

        Returns the terminal state for the caller that finished the last
        outstanding job, ``None`` for everyone else.
        """
        if job_type not in self.pending:
            return None
        self.pending.discard(job_type)
        if error is not None:
            self.failures[job_type] = str(error) or type(error).__name__
        if self.pending:
            return None
        self.state = ProcessingState.FAILED if self.failures else ProcessingState.COMPLETED
        return self.state


class Orchestrator:
    """Queue, worker pool and state machine for asset processing."""

    def __init__(
        self,
        storage: StorageManager,
        store: AssetStore,
        config: ProcessingConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._storage = storage
        self._store = store
        self._config = config
        self._sleep = sleep
        self._queue: asyncio.Queue[tuple[ProcessingJob, AssetTracker]] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self._workers:
            return
        for n in range(max(1, self._config.workers)):
            self._workers.append(asyncio.create_task(self._worker(n), name=f"assetvault-worker-{n}"))
        logger.info("Started %d processing workers", len(self._workers))

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def __aenter__(self) -> Orchestrator:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def submit(
        self,
        record: AssetRecord,
        requested_variants: list[str] | None = None,
    ) -> list[ProcessingJob]:
        """Enqueue the processing jobs for a freshly uploaded asset."""
        job_types = jobs_for(record.asset_type, video_preview=self._config.video_preview)
        tracker = AssetTracker(record.id, {t for t in job_types if t in MANDATORY_JOBS})

        jobs = [
            ProcessingJob(
                asset_id=record.id,
                file_key=record.file_key,
                mime_type=record.mime_type,
                job_type=job_type,
                original_filename=record.filename,
                backend=record.backend,
                requested_variants=requested_variants if job_type is JobType.VARIANT_SET else None,
            )
            for job_type in job_types
        ]
        for job in jobs:
            self._queue.put_nowait((job, tracker))

        logger.debug(
            "Queued %s for asset %s", ", ".join(j.job_type.value for j in jobs), record.id
        )
        return jobs

    # -- worker internals --

    async def _worker(self, n: int) -> None:
        while True:
            job, tracker = await self._queue.get()
            try:
                await self.run_job(job, tracker)
            except Exception:
                logger.exception("Worker %d crashed on %s for asset %s", n, job.job_type.value, job.asset_id)
            finally:
                self._queue.task_done()

    async def run_job(self, job: ProcessingJob, tracker: AssetTracker) -> None:
        """Run one job with retries and apply any resulting state transition."""
        async with tracker.lock:
            if tracker.start():
                try:
                    await self._store.set_processing_state(job.asset_id, ProcessingState.PROCESSING)
                except Exception:
                    # The terminal write still follows; never strand the join counter.
                    logger.warning(
                        "Could not mark asset %s as PROCESSING", job.asset_id, exc_info=True
                    )

        error: Exception | None = None
        try:
            await self._run_with_retries(job)
        except Exception as exc:
            error = exc

        if not job.is_mandatory:
            if error is not None:
                logger.warning(
                    "Best-effort %s failed for asset %s: %s", job.job_type.value, job.asset_id, error
                )
            return

        async with tracker.lock:
            state = tracker.finish(job.job_type, error)
            if state is None:
                return
            message = None
            if state is ProcessingState.FAILED:
                failed = ProcessingFailed(
                    job.asset_id,
                    ", ".join(t.value for t in tracker.failures),
                    "; ".join(tracker.failures.values()),
                )
                message = str(failed)
                logger.error("Asset %s processing failed: %s", job.asset_id, message)
            else:
                logger.info("Asset %s processing completed", job.asset_id)
            await self._write_terminal_state(job.asset_id, state, message)

    async def _write_terminal_state(
        self, asset_id: str, state: ProcessingState, message: str | None
    ) -> None:
        """Persist COMPLETED/FAILED, retrying store errors before giving up loudly."""
        for attempt in range(STATE_WRITE_ATTEMPTS):
            try:
                await self._store.set_processing_state(asset_id, state, error=message)
                return
            except Exception:
                if attempt + 1 >= STATE_WRITE_ATTEMPTS:
                    logger.error(
                        "Could not record %s for asset %s after %d attempts",
                        state.value,
                        asset_id,
                        STATE_WRITE_ATTEMPTS,
                        exc_info=True,
                    )
                    raise
                logger.warning(
                    "Recording %s for asset %s failed, retrying",
                    state.value,
                    asset_id,
                    exc_info=True,
                )
                await self._sleep(self._config.retry_backoff * (2 ** attempt))

    async def _run_with_retries(self, job: ProcessingJob) -> None:
        retries = self._config.retries.for_job(job.job_type.value)
        attempt = 0
        while True:
            job.attempt = attempt
            try:
                with observability.job_span(job.job_type.value, job.asset_id, attempt):
                    await self._execute(job)
                return
            except Exception as exc:
                if attempt >= retries:
                    raise
                delay = self._config.retry_backoff * (2 ** attempt)
                logger.warning(
                    "%s attempt %d/%d failed for asset %s, retrying in %.1fs: %s",
                    job.job_type.value,
                    attempt + 1,
                    retries + 1,
                    job.asset_id,
                    delay,
                    exc,
                )
                await self._sleep(delay)
                attempt += 1

    async def _execute(self, job: ProcessingJob) -> None:
        data = await self._storage.get(job.file_key, backend=job.backend)
        timeout = self._config.job_timeout

        if job.job_type is JobType.METADATA:
            metadata = await generators.extract_metadata(data, job.asset_type, timeout)
            await self._store.save_metadata(job.asset_id, metadata)

        elif job.job_type is JobType.THUMBNAIL:
            variant = await generators.generate_thumbnail(self._storage, data, job, timeout)
            if variant is not None:
                await self._store.create_variant(variant)

        elif job.job_type is JobType.VARIANT_SET:
            result = await generators.generate_variant_set(
                self._storage, data, job, self._config.variant_presets, timeout
            )
            for variant in result.variants:
                await self._store.create_variant(variant)
            if result.partial:
                await self._store.record_variant_errors(job.asset_id, result.errors)
                logger.warning("Asset %s: %s", job.asset_id, result.failure())

        elif job.job_type is JobType.PREVIEW_CLIP:
            variant = await generators.generate_video_preview(
                self._storage,
                data,
                job,
                timeout,
                duration=self._config.preview_duration,
                start=self._config.preview_start,
            )
            await self._store.create_variant(variant)
