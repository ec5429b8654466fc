"""
Formation queue - bounded async intake with a single background worker.

enqueue() never waits: a full buffer is reported as a failed status right
away. The worker forms memories strictly in enqueue order.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import uuid4

from recollect.core.logging import get_logger
from recollect.memory.base import Category
from recollect.memory.formation import (
    FormationIntent,
    FormationResult,
    FormationService,
)

logger = get_logger("memory.queue")

DEFAULT_BUFFER_SIZE = 100


class QueueStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class StatusUpdate:
    request_id: str
    status: QueueStatus
    message: str


StatusCallback = Callable[[StatusUpdate], None]


class FormationQueue:
    """Queued memory formation on top of a FormationService.

    Intents are tracked as pending from enqueue until the worker is done
    with them, so FormationService.wait() covers queued work too.
    """

    def __init__(
        self,
        service: FormationService,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        on_status: StatusCallback | None = None,
        item_timeout: float = 30.0,
    ):
        if buffer_size <= 0:
            buffer_size = DEFAULT_BUFFER_SIZE
        self.service = service
        self.buffer_size = buffer_size
        self.on_status = on_status
        self.item_timeout = item_timeout

        self._queue: asyncio.Queue[FormationIntent] = asyncio.Queue(maxsize=buffer_size)
        self._worker_task: asyncio.Task | None = None
        self._in_flight: asyncio.Task | None = None
        self._accepting = False

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Spawn the worker. Must be called from a running event loop."""
        if self.running:
            return
        self._accepting = True
        self._worker_task = asyncio.create_task(self._worker(), name="formation-worker")
        logger.debug(f"Formation queue started (buffer={self.buffer_size})")

    def enqueue(
        self,
        content: str,
        category: Category = Category.FACT,
        agent_handle: str | None = None,
        path_scope: str | None = None,
        source_session_id: str | None = None,
        source_message_id: str | None = None,
    ) -> str:
        """Queue a memory for formation and return its request id immediately."""
        intent = FormationIntent(
            id=uuid4().hex[:8],
            content=content,
            category=category,
            agent_handle=agent_handle,
            path_scope=path_scope,
            source_session_id=source_session_id,
            source_message_id=source_message_id,
        )

        if not self._accepting:
            self._reject(intent, "queue not running")
            return intent.id

        self._send_status(intent.id, QueueStatus.PENDING, "Memory queued")
        self.service.track(intent)
        try:
            self._queue.put_nowait(intent)
        except asyncio.QueueFull:
            self.service.untrack(intent.id)
            logger.warning(f"Formation queue full, rejected {intent.id}")
            self._reject(intent, "queue full")

        return intent.id

    def pending(self) -> int:
        """Approximate number of buffered, not yet started requests."""
        return self._queue.qsize()

    async def stop(self, grace: float = 5.0) -> None:
        """Stop accepting work and drain the buffer within grace seconds.

        The item being formed when grace runs out is still allowed to
        finish; whatever remains buffered is reported failed.
        """
        self._accepting = False
        if self._worker_task is None:
            return

        try:
            await asyncio.wait_for(self._queue.join(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(
                f"Formation queue drain timed out after {grace}s, "
                f"{self._queue.qsize()} requests left"
            )

        self._worker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker_task
        self._worker_task = None

        if self._in_flight is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._in_flight
            self._in_flight = None

        while not self._queue.empty():
            intent = self._queue.get_nowait()
            self._queue.task_done()
            self.service.untrack(intent.id)
            self._reject(intent, "dropped at shutdown")

        logger.debug("Formation queue stopped")

    async def _worker(self) -> None:
        while True:
            intent = await self._queue.get()
            try:
                self._in_flight = asyncio.create_task(self._process(intent))
                # Shielded so stop() cannot cancel an item mid-formation
                await asyncio.shield(self._in_flight)
                self._in_flight = None
            finally:
                self._queue.task_done()

    async def _process(self, intent: FormationIntent) -> None:
        self._send_status(intent.id, QueueStatus.IN_PROGRESS, "Storing memory...")

        try:
            result = await asyncio.wait_for(
                self.service.form(intent), timeout=self.item_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Formation of {intent.id} timed out after {self.item_timeout}s")
            result = FormationResult.failure(
                intent, "formation timed out", elapsed=self.item_timeout
            )
            self.service.notify(result)

        if result.success:
            self._send_status(intent.id, QueueStatus.COMPLETED, f"Memory {result.outcome.value}")
        else:
            self._send_status(intent.id, QueueStatus.FAILED, f"Failed: {result.error}")

    def _reject(self, intent: FormationIntent, reason: str) -> None:
        self._send_status(intent.id, QueueStatus.FAILED, f"Failed: {reason}")
        self.service.notify(FormationResult.failure(intent, reason))

    def _send_status(self, request_id: str, status: QueueStatus, message: str) -> None:
        if self.on_status is None:
            return
        try:
            self.on_status(StatusUpdate(request_id=request_id, status=status, message=message))
        except Exception as e:
            logger.warning(f"Status callback failed for {request_id}: {e}")
