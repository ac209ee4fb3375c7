"""Per-session sample workers

Each session with incoming samples gets one asyncio task fed by a bounded
queue, so samples for a session are applied strictly one after another while
different sessions proceed concurrently.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..exceptions import WalkError
from .connections import ConnectionRegistry
from .gps_validator import GPSSample
from .walks import WalkService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSample:
    sample: GPSSample
    user_id: str | None = None


SampleHandler = Callable[[str, QueuedSample], Awaitable[Any]]


class SessionWorkerPool:
    """Routes samples to one sequential worker per session id"""

    def __init__(
        self,
        handler: SampleHandler,
        queue_size: int = 32,
        sample_timeout: float = 5.0,
        idle_timeout: float = 60.0,
    ):
        self.handler = handler
        self.queue_size = queue_size
        self.sample_timeout = sample_timeout
        self.idle_timeout = idle_timeout
        self._queues: dict[str, asyncio.Queue] = {}
        self._workers: dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def active_workers(self) -> int:
        return len(self._workers)

    async def start(self):
        """Start accepting samples"""
        if self._running:
            logger.warning("Worker pool already running")
            return
        self._running = True
        logger.info("🛰️  Sample worker pool started")

    async def stop(self):
        """Stop all workers, samples still queued are dropped"""
        self._running = False
        workers = list(self._workers.values())
        for task in workers:
            task.cancel()
        for task in workers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._workers.clear()
        self._queues.clear()
        logger.info("🛑 Sample worker pool stopped")

    def submit(self, session_id: str, sample: GPSSample, user_id: str | None = None) -> bool:
        """Queue a sample for its session. Returns False if it was dropped."""
        if not self._running:
            raise RuntimeError("Worker pool is not running")

        queue = self._queues.get(session_id)
        if queue is None:
            queue = asyncio.Queue(maxsize=self.queue_size)
            self._queues[session_id] = queue
            self._workers[session_id] = asyncio.create_task(
                self._run_worker(session_id, queue), name=f"session-worker-{session_id}"
            )

        try:
            queue.put_nowait(QueuedSample(sample=sample, user_id=user_id))
        except asyncio.QueueFull:
            logger.warning(f"⚠️  Queue full for session {session_id}, dropping sample")
            return False
        return True

    async def join(self, session_id: str):
        """Wait until every sample queued so far for the session has been handled"""
        queue = self._queues.get(session_id)
        if queue is not None:
            await queue.join()

    async def _run_worker(self, session_id: str, queue: asyncio.Queue):
        try:
            while self._running:
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=self.idle_timeout)
                except asyncio.TimeoutError:
                    if queue.empty():
                        break
                    continue

                try:
                    await self._process(session_id, item)
                finally:
                    queue.task_done()
        finally:
            # Only remove our own entry, a new worker may already own the key
            if self._queues.get(session_id) is queue:
                del self._queues[session_id]
                self._workers.pop(session_id, None)

    async def _process(self, session_id: str, item: QueuedSample):
        try:
            await asyncio.wait_for(self.handler(session_id, item), timeout=self.sample_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"⏱️  Dropped sample for session {session_id}: not validated within {self.sample_timeout}s"
            )
        except WalkError as e:
            logger.info(f"Sample rejected for session {session_id}: {e.message}")
        except Exception as e:
            # Fresh samples arrive every few seconds, so no retry
            logger.error(f"❌ Error processing sample for session {session_id}: {e}", exc_info=True)


def make_sample_handler(walk_service: WalkService, registry: ConnectionRegistry) -> SampleHandler:
    """Ingest a sample, then acknowledge it on the sender's socket"""

    async def handle(session_id: str, item: QueuedSample):
        result = await walk_service.ingest_sample(session_id, item.sample, item.user_id)
        if item.user_id is not None:
            await registry.send(
                item.user_id,
                {
                    "type": "ACK",
                    "status": "validated",
                    "sessionId": session_id,
                    "trustScore": result.trust_score,
                    "flags": result.flags,
                    "routeIntegrity": result.route_integrity,
                },
            )
        return result

    return handle
