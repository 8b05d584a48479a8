"""
Analysis lifecycle tracking.

Uploads are handed to the tracker through an asyncio queue. Workers drain the
queue and submit each record: the pending -> processing write happens before
submit returns, then a deferred task runs the analysis engine and finishes the
record as completed (with results) or failed. Nothing is retried; a failed
record stays failed.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError

from badminton_domain.entities import AnalysisSnapshot, AnalysisStatus
from badminton_domain.errors import (
    AnalysisEngineFailure,
    AnalysisTimeout,
    PersistenceFailure,
    RecordNotFound,
)
from badminton_domain.ports import IAnalysisEngine
from .models import AnalysisResults
from .storage import StorageManager


logger = logging.getLogger(__name__)

RESTART_FAILURE = "Analysis interrupted by server restart"
SHUTDOWN_FAILURE = "Analysis cancelled at shutdown"


class AnalysisTracker:
    """
    Owns the status transitions of analysis records.

    Only this class moves a record out of pending. At most one deferred
    analysis is in flight per record: submit on anything but a pending record
    is a no-op that reports the current status.
    """

    def __init__(
        self,
        storage: StorageManager,
        engine: IAnalysisEngine,
        timeout_s: float = 60.0,
        worker_count: int = 1,
        max_concurrent: int = 4
    ):
        self.storage = storage
        self.engine = engine
        self.timeout_s = timeout_s
        self.worker_count = worker_count

        self._queue: asyncio.Queue = asyncio.Queue()
        self._slots = asyncio.Semaphore(max_concurrent)
        self._workers: List[asyncio.Task] = []
        self._inflight: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Worker pool
    # ------------------------------------------------------------------

    def start(self):
        """Start the queue workers. Must be called from the running loop."""
        for n in range(self.worker_count - len(self._workers)):
            self._workers.append(asyncio.create_task(self._worker(), name=f"analysis-worker-{n}"))
        logger.info("Started %d analysis worker(s) using the %s engine", len(self._workers), self.engine.name)

    async def stop(self):
        """Stop workers and cancel deferred analyses still in flight."""
        inflight_ids = list(self._inflight)
        pending = self._workers + list(self._inflight.values())
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        # A task cancelled before its first step never reached its own handler
        for record_id in inflight_ids:
            self._fail(record_id, SHUTDOWN_FAILURE)
        self._workers.clear()
        self._inflight.clear()
        logger.info("Analysis tracker stopped")

    async def _worker(self):
        """Background worker that submits queued records."""
        while True:
            record_id, artifact_location = await self._queue.get()
            try:
                await self.submit(record_id, artifact_location)
            except RecordNotFound:
                logger.error("Queued analysis %s has no record; dropping it", record_id)
            except Exception:
                logger.exception("Could not submit analysis %s", record_id)
            finally:
                self._queue.task_done()

    def enqueue(self, record_id: str, artifact_location: str):
        """Hand a freshly created record to the workers without blocking."""
        self._queue.put_nowait((record_id, artifact_location))
        logger.debug("Queued analysis %s", record_id)

    async def wait_idle(self):
        """Wait until the queue is drained and no analysis is in flight."""
        await self._queue.join()
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def submit(self, record_id: str, artifact_location: str) -> AnalysisStatus:
        """
        Start analysis of a pending record.

        The processing status is persisted before this returns; the analysis
        itself runs in a separate task.

        Raises:
            RecordNotFound: no record with this id
            PersistenceFailure: the processing status could not be written
        """
        record = self.storage.get_record(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        if record.status != AnalysisStatus.PENDING:
            logger.info("Analysis %s is already %s, ignoring submit", record_id, record.status.value)
            return record.status

        updated = self.storage.transition(record_id, AnalysisStatus.PENDING, AnalysisStatus.PROCESSING)
        if updated is None:
            current = self.storage.get_record(record_id)
            return current.status

        logger.info("Analysis %s: pending -> processing", record_id)
        task = asyncio.create_task(self._complete(record_id, artifact_location), name=f"analysis-{record_id}")
        self._inflight[record_id] = task
        task.add_done_callback(lambda _t: self._inflight.pop(record_id, None))
        return AnalysisStatus.PROCESSING

    def query(self, record_id: str) -> AnalysisSnapshot:
        """Current status, plus results once completed."""
        record = self.storage.get_record(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return AnalysisSnapshot.of(record)

    def is_in_flight(self, record_id: str) -> bool:
        return record_id in self._inflight

    async def _run_engine(self, artifact_location: str) -> dict:
        async with self._slots:
            try:
                raw = await asyncio.wait_for(self.engine.analyze(artifact_location), timeout=self.timeout_s)
            except asyncio.TimeoutError as e:
                raise AnalysisTimeout(f"Analysis timed out after {self.timeout_s:g}s") from e
        try:
            return AnalysisResults.model_validate(raw).model_dump(exclude_none=True)
        except ValidationError as e:
            raise AnalysisEngineFailure("Analysis returned an invalid result") from e

    async def _complete(self, record_id: str, artifact_location: str):
        """Deferred step: run the engine and finish the record."""
        if self.storage.get_record(record_id) is None:
            logger.error("Analysis %s vanished before it could run", record_id)
            return

        try:
            results = await self._run_engine(artifact_location)
        except asyncio.CancelledError:
            self._fail(record_id, SHUTDOWN_FAILURE)
            raise
        except AnalysisEngineFailure as e:
            logger.error("Analysis %s failed: %s", record_id, e)
            self._fail(record_id, e.public_message)
            return
        except Exception:
            logger.exception("Analysis %s raised unexpectedly", record_id)
            self._fail(record_id, AnalysisEngineFailure.public_message)
            return

        try:
            updated = self.storage.transition(
                record_id, AnalysisStatus.PROCESSING, AnalysisStatus.COMPLETED, results=results
            )
        except RecordNotFound:
            logger.error("Analysis %s vanished before results could be attached", record_id)
            return
        except PersistenceFailure:
            self._fail(record_id, "Analysis results could not be stored")
            return

        if updated is None:
            logger.warning("Analysis %s left processing before completion; results dropped", record_id)
        else:
            logger.info("Analysis %s: processing -> completed", record_id)

    def _fail(self, record_id: str, reason: str):
        try:
            updated = self.storage.transition(
                record_id, AnalysisStatus.PROCESSING, AnalysisStatus.FAILED, error=reason
            )
        except RecordNotFound:
            logger.error("Analysis %s vanished before it could be marked failed", record_id)
            return
        except PersistenceFailure:
            logger.exception("Analysis %s could not be marked failed", record_id)
            return
        if updated is not None:
            logger.info("Analysis %s: processing -> failed (%s)", record_id, reason)

    # ------------------------------------------------------------------
    # Startup recovery
    # ------------------------------------------------------------------

    def recover(self) -> Tuple[int, int]:
        """
        Reconcile records left over from a previous process.

        Records stuck in processing are failed; pending records are queued.

        Returns:
            (failed, requeued) counts
        """
        failed = 0
        for record in self.storage.list_records(status=AnalysisStatus.PROCESSING):
            if self.is_in_flight(record.id):
                continue
            if self.storage.transition(
                record.id, AnalysisStatus.PROCESSING, AnalysisStatus.FAILED, error=RESTART_FAILURE
            ):
                failed += 1

        pending = self.storage.list_records(status=AnalysisStatus.PENDING)
        for record in pending:
            self.enqueue(record.id, record.artifact_location)

        if failed or pending:
            logger.info("Recovered records: %d failed, %d re-queued", failed, len(pending))
        return failed, len(pending)

    def stats(self) -> Dict[str, Optional[int]]:
        return {
            "workers": len(self._workers),
            "queued": self._queue.qsize(),
            "in_flight": len(self._inflight),
        }
