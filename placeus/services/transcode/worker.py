from __future__ import annotations

"""
Transcode worker pool
---------------------
Bounded background execution of `TranscodeOrchestrator` runs.

- `submit(job)` records `queued` and enqueues; it never raises into the
  upload request.
- `concurrency` workers drain an `asyncio.Queue`.
- Transient storage failures (`S3StorageError`, except a missing source
  object) are retried with exponential backoff up to `max_attempts`.
  Transcoder failures are final.
- Every state change is written to `<prefix>/<lesson_id>/transcode.json`.
- `stop(grace)` waits for pending jobs up to `grace` seconds, then cancels.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from placeus.core.storage import MediaLayout
from placeus.schemas.media import TranscodeJobRecord, TranscodeStatus
from placeus.services.object_store import ObjectStoreProtocol, put_json
from placeus.services.transcode.orchestrator import TranscodeError, TranscodeOrchestrator
from placeus.utils.aws import ObjectNotFoundError, S3StorageError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class TranscodeJob:
    """Queued work item. Holds keys only; the source is fetched by the run."""

    lesson_id: str
    media_key: str


class TranscodeWorkerPool:
    def __init__(
        self,
        orchestrator: TranscodeOrchestrator,
        store: ObjectStoreProtocol,
        layout: MediaLayout,
        *,
        concurrency: int = 2,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.orchestrator = orchestrator
        self.store = store
        self.layout = layout
        self.concurrency = max(1, int(concurrency))
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = float(base_delay)
        self._sleep = sleep
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    # ── lifecycle ──────────────────────────────────────────────
    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(n), name=f"transcode-worker-{n}")
            for n in range(self.concurrency)
        ]
        logger.info("Transcode pool started (%d workers)", self.concurrency)

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self, grace: float = 30.0) -> None:
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self.join(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(
                "Transcode pool stopping with %d job(s) unfinished", self._queue.qsize() if self._queue else 0
            )
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Transcode pool stopped")

    # ── intake side ────────────────────────────────────────────
    async def submit(self, job: TranscodeJob) -> None:
        self.start()
        await self._record(job, TranscodeStatus.QUEUED, attempts=0)
        assert self._queue is not None
        self._queue.put_nowait(job)
        logger.debug("Queued transcode for %s", job.lesson_id)

    # ── execution ──────────────────────────────────────────────
    async def _worker(self, n: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                await self.process(job)
            except Exception:
                logger.exception("Transcode worker %d crashed on %s", n, job.lesson_id)
            finally:
                queue.task_done()

    async def process(self, job: TranscodeJob) -> TranscodeStatus:
        """Run one job to a final status, retrying transient storage errors."""
        for attempt in range(1, self.max_attempts + 1):
            await self._record(job, TranscodeStatus.RUNNING, attempts=attempt)
            try:
                artifacts = await self.orchestrator.run(job.lesson_id, job.media_key)
            except TranscodeError as e:
                logger.error("Transcode failed for %s: %s", job.lesson_id, e)
                await self._record(job, TranscodeStatus.FAILED, attempts=attempt, error=str(e))
                return TranscodeStatus.FAILED
            except ObjectNotFoundError as e:
                logger.error("Transcode source missing for %s: %s", job.lesson_id, e)
                await self._record(job, TranscodeStatus.FAILED, attempts=attempt, error=str(e))
                return TranscodeStatus.FAILED
            except S3StorageError as e:
                if attempt >= self.max_attempts:
                    logger.error("Transcode for %s gave up after %d attempts: %s", job.lesson_id, attempt, e)
                    await self._record(job, TranscodeStatus.FAILED, attempts=attempt, error=str(e))
                    return TranscodeStatus.FAILED
                delay = self.base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "Transcode attempt %d for %s hit a storage error (%s); retrying in %.1fs",
                    attempt, job.lesson_id, e, delay,
                )
                await self._sleep(delay)
                continue
            except Exception as e:
                logger.exception("Unexpected transcode failure for %s", job.lesson_id)
                await self._record(job, TranscodeStatus.FAILED, attempts=attempt, error=str(e))
                return TranscodeStatus.FAILED

            await self._record(job, TranscodeStatus.SUCCEEDED, attempts=attempt, artifacts=artifacts)
            return TranscodeStatus.SUCCEEDED

        return TranscodeStatus.FAILED  # pragma: no cover

    async def _record(
        self,
        job: TranscodeJob,
        status: TranscodeStatus,
        *,
        attempts: int,
        error: Optional[str] = None,
        artifacts: Optional[List[str]] = None,
    ) -> None:
        record = TranscodeJobRecord(
            status=status, attempts=attempts, error=error, artifacts=artifacts or []
        )
        try:
            await put_json(self.store, self.layout.job_key(job.lesson_id), record.dump())
        except S3StorageError as e:
            logger.warning("Could not write job record for %s (%s): %s", job.lesson_id, status.value, e)


__all__ = ["TranscodeJob", "TranscodeWorkerPool"]
