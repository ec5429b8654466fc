"""
Memory module - semantic memory about the user and their projects.

Layers:
- store: lifecycle (create/supersede/forget/...) and similarity search
- formation: dedup/supersede/create decisions, direct or queued
- triggers: phrase heuristics that propose formation intents
- context: retrieved memories formatted for a system prompt

Storage: SQLite (embeddings as float32 BLOBs)
"""

from recollect.memory.base import (
    AmbiguousPrefixError,
    BackendNotConnectedError,
    Category,
    Memory,
    MemoryBackend,
    MemoryNotFoundError,
    MemoryStoreError,
    SearchOptions,
    SearchResult,
    Status,
    SupersessionError,
)
from recollect.memory.formation import (
    EXACT_THRESHOLD,
    SUPERSEDE_THRESHOLD,
    FormationIntent,
    FormationOutcome,
    FormationResult,
    FormationService,
)
from recollect.memory.queue import FormationQueue, QueueStatus, StatusUpdate
from recollect.memory.sqlite import SQLiteMemoryBackend
from recollect.memory.store import MemoryStore
from recollect.memory.triggers import Trigger, TriggerType, detect_triggers, intent_from_message

__all__ = [
    "AmbiguousPrefixError",
    "BackendNotConnectedError",
    "Category",
    "EXACT_THRESHOLD",
    "FormationIntent",
    "FormationOutcome",
    "FormationQueue",
    "FormationResult",
    "FormationService",
    "Memory",
    "MemoryBackend",
    "MemoryNotFoundError",
    "MemoryStore",
    "MemoryStoreError",
    "QueueStatus",
    "SQLiteMemoryBackend",
    "SUPERSEDE_THRESHOLD",
    "SearchOptions",
    "SearchResult",
    "Status",
    "StatusUpdate",
    "SupersessionError",
    "Trigger",
    "TriggerType",
    "detect_triggers",
    "intent_from_message",
]
