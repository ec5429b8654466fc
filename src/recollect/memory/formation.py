"""
Memory formation - turn a "remember this" intent into a stored memory.

Every intent goes through one decision procedure: search the same scope
for the most similar active memory, then dedup, supersede or create.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable
from uuid import uuid4

from recollect.core.logging import get_logger
from recollect.memory.base import Category, Memory, SearchOptions
from recollect.memory.store import MemoryStore

logger = get_logger("memory.formation")

# At or above: same memory, nothing is written
EXACT_THRESHOLD = 0.95
# At or above (and below exact): the new memory replaces the old one
SUPERSEDE_THRESHOLD = 0.85

SUPERSEDE_REASON = "updated via memory formation"


@dataclass
class FormationIntent:
    """A request to remember something. Never persisted."""

    content: str
    category: Category = Category.FACT
    id: str = ""
    agent_handle: str | None = None
    path_scope: str | None = None
    source_session_id: str | None = None
    source_message_id: str | None = None

    def to_memory(self) -> Memory:
        return Memory(
            content=self.content,
            category=self.category,
            agent_handle=self.agent_handle,
            path_scope=self.path_scope,
            source_session_id=self.source_session_id,
            source_message_id=self.source_message_id,
        )


class FormationOutcome(Enum):
    CREATED = "created"
    DEDUPLICATED = "deduplicated"  # Existing memory returned unchanged
    SUPERSEDED = "superseded"  # Existing memory replaced by a new one
    FAILED = "failed"


@dataclass(frozen=True)
class FormationResult:
    """Terminal outcome of one intent, broadcast once to observers."""

    intent: FormationIntent
    outcome: FormationOutcome
    memory: Memory | None = None
    elapsed: float = 0.0  # seconds
    superseded_id: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome is not FormationOutcome.FAILED

    @classmethod
    def failure(
        cls,
        intent: FormationIntent,
        error: str,
        elapsed: float = 0.0,
        memory: Memory | None = None,
    ) -> "FormationResult":
        return cls(
            intent=intent,
            outcome=FormationOutcome.FAILED,
            memory=memory,
            elapsed=elapsed,
            error=error,
        )


FormationCallback = Callable[[FormationResult], None]


class FormationService:
    """Dedup/supersede/create decision procedure plus result notification.

    Shared with the formation queue: both direct and queued formation end
    up in form(). The pending set and the observer list may be touched
    from other threads and are guarded by a lock.
    """

    def __init__(self, store: MemoryStore):
        self.store = store
        self._lock = threading.Lock()
        self._callbacks: list[FormationCallback] = []
        self._pending: dict[str, FormationIntent] = {}

    def on_formation(self, callback: FormationCallback) -> None:
        """Register an observer for every terminal result."""
        with self._lock:
            self._callbacks.append(callback)

    def track(self, intent: FormationIntent) -> str:
        """Add an intent to the pending set, assigning an id if needed."""
        if not intent.id:
            intent.id = str(uuid4())
        with self._lock:
            self._pending[intent.id] = intent
        return intent.id

    def untrack(self, intent_id: str) -> None:
        with self._lock:
            self._pending.pop(intent_id, None)

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def is_pending(self, intent_id: str) -> bool:
        with self._lock:
            return intent_id in self._pending

    async def wait(self, timeout: float) -> bool:
        """Poll until nothing is pending or timeout expires.

        Returns True if the pending set drained in time.
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.pending_count() == 0:
                return True
            await asyncio.sleep(0.01)
        return self.pending_count() == 0

    async def form(self, intent: FormationIntent) -> FormationResult:
        """Run the decision procedure for one intent and broadcast the result.

        The intent leaves the pending set whatever happens, including
        cancellation. A cancelled formation broadcasts nothing; whoever
        cancelled it reports the failure.
        """
        self.track(intent)
        try:
            result = await self._form(intent)
        finally:
            self.untrack(intent.id)

        self.notify(result)
        return result

    def notify(self, result: FormationResult) -> None:
        """Deliver a result to a snapshot of the observers."""
        with self._lock:
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(result)
            except Exception as e:
                logger.warning(f"Formation observer failed: {e}")

    async def _form(self, intent: FormationIntent) -> FormationResult:
        start = time.monotonic()

        try:
            matches = await self.store.search(
                intent.content,
                SearchOptions(
                    agent_handle=intent.agent_handle,
                    path_scope=intent.path_scope,
                    threshold=SUPERSEDE_THRESHOLD,
                    limit=1,
                ),
            )
        except Exception as e:
            # Fail open: an unsearchable store should not stop memories forming
            logger.warning(f"Dedup search failed for intent {intent.id[:8]}, creating: {e}")
            matches = []

        best = matches[0] if matches else None

        try:
            if best is not None and best.similarity >= EXACT_THRESHOLD:
                logger.debug(
                    f"Intent {intent.id[:8]} duplicates {best.memory.short_id} "
                    f"(similarity={best.similarity:.3f})"
                )
                return FormationResult(
                    intent=intent,
                    outcome=FormationOutcome.DEDUPLICATED,
                    memory=best.memory,
                    elapsed=time.monotonic() - start,
                )

            if best is not None and best.similarity >= SUPERSEDE_THRESHOLD:
                memory = await self.store.supersede(
                    best.memory.id, intent.to_memory(), SUPERSEDE_REASON
                )
                return FormationResult(
                    intent=intent,
                    outcome=FormationOutcome.SUPERSEDED,
                    memory=memory,
                    elapsed=time.monotonic() - start,
                    superseded_id=best.memory.id,
                )

            memory = await self.store.create(intent.to_memory())
            logger.info(f"Formed memory {memory.short_id}: {memory.content[:60]}")
            return FormationResult(
                intent=intent,
                outcome=FormationOutcome.CREATED,
                memory=memory,
                elapsed=time.monotonic() - start,
            )
        except Exception as e:
            logger.error(f"Formation failed for intent {intent.id[:8]}: {e}")
            return FormationResult.failure(
                intent,
                str(e),
                elapsed=time.monotonic() - start,
                memory=getattr(e, "created", None),
            )
