"""
Memory data model and persistence backend interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(Enum):
    PREFERENCE = "preference"  # User preferences
    FACT = "fact"  # Facts about the user or project
    CORRECTION = "correction"  # Corrections to agent behavior
    PATTERN = "pattern"  # Observed behavioral patterns


class Status(Enum):
    ACTIVE = "active"
    SUPERSEDED = "superseded"  # Replaced by a newer memory
    ARCHIVED = "archived"
    FORGOTTEN = "forgotten"  # Soft deleted


@dataclass
class Memory:
    """A stored fact, preference, correction or pattern.

    Invariants: status is SUPERSEDED exactly when superseded_by_id is set;
    a supersession pair links both ways (new.supersedes_id == old.id and
    old.superseded_by_id == new.id).
    """

    content: str
    category: Category = Category.FACT
    id: str = ""
    agent_handle: str | None = None  # None = global
    path_scope: str | None = None  # None = not path-scoped
    embedding: list[float] | None = None

    # Provenance
    source_session_id: str | None = None
    source_message_id: str | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_accessed_at: datetime | None = None
    access_count: int = 0
    confidence: float = 1.0

    # Supersession chain
    supersedes_id: str | None = None
    superseded_by_id: str | None = None
    supersession_reason: str | None = None

    status: Status = Status.ACTIVE

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def to_dict(self) -> dict:
        """Serialize for JSON output (embedding omitted)."""
        return {
            "id": self.id,
            "agent_handle": self.agent_handle,
            "path_scope": self.path_scope,
            "content": self.content,
            "category": self.category.value,
            "source_session_id": self.source_session_id,
            "source_message_id": self.source_message_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "last_accessed_at": (
                self.last_accessed_at.isoformat() if self.last_accessed_at else None
            ),
            "access_count": self.access_count,
            "confidence": self.confidence,
            "supersedes_id": self.supersedes_id,
            "superseded_by_id": self.superseded_by_id,
            "supersession_reason": self.supersession_reason,
            "status": self.status.value,
            "has_embedding": bool(self.embedding),
        }


@dataclass
class SearchResult:
    """A memory with its similarity to the query. distance = 1 - similarity."""

    memory: Memory
    similarity: float
    distance: float


@dataclass
class SearchOptions:
    """Filters for semantic search. Empty scope fields match everything."""

    agent_handle: str | None = None
    path_scope: str | None = None
    threshold: float = 0.5
    limit: int = 10
    categories: list[Category] = field(default_factory=list)


class MemoryStoreError(Exception):
    """Base class for memory store failures."""


class MemoryNotFoundError(MemoryStoreError):
    """No memory with the given id or prefix."""


class AmbiguousPrefixError(MemoryStoreError):
    """An id prefix matched more than one memory."""

    def __init__(self, prefix: str, matches: int):
        super().__init__(f"Ambiguous prefix {prefix!r}: {matches} memories match")
        self.prefix = prefix
        self.matches = matches


class SupersessionError(MemoryStoreError):
    """New memory was created but the old one could not be marked superseded.

    The new memory stays in place; there is no rollback.
    """

    def __init__(self, old_id: str, created: Memory, cause: Exception):
        super().__init__(
            f"Created {created.id} but failed to supersede {old_id}: {cause}"
        )
        self.old_id = old_id
        self.created = created


class BackendNotConnectedError(MemoryStoreError, RuntimeError):
    """Backend used before connect()."""


class MemoryBackend(ABC):
    """Durable memory storage keyed by id.

    Implementations persist Memory.embedding with embedding.vectors.serialize
    and return it deserialized.
    """

    async def connect(self) -> None:
        """Open the underlying storage."""
        return None

    async def close(self) -> None:
        """Release the underlying storage."""
        return None

    @abstractmethod
    async def insert(self, memory: Memory) -> None:
        """Insert a new memory."""
        ...

    @abstractmethod
    async def update(self, memory: Memory) -> bool:
        """Update content, category, embedding, confidence and updated_at."""
        ...

    @abstractmethod
    async def mark_superseded(
        self, memory_id: str, superseded_by_id: str, reason: str, at: datetime
    ) -> bool:
        """Flip a memory to superseded with a backlink to its replacement.

        Returns False if the memory is missing or already superseded; the
        existing backlink is never overwritten.
        """
        ...

    @abstractmethod
    async def set_status(self, memory_id: str, status: Status, at: datetime) -> bool:
        """Change lifecycle status (forget, archive). Superseded rows are left alone."""
        ...

    @abstractmethod
    async def delete(self, memory_id: str) -> bool:
        """Permanently remove a memory."""
        ...

    @abstractmethod
    async def get(self, memory_id: str) -> Memory | None:
        """Fetch one memory by id."""
        ...

    @abstractmethod
    async def candidates_for_search(
        self, agent_handle: str | None = None, path_scope: str | None = None
    ) -> list[Memory]:
        """Active memories with an embedding, in scope or global."""
        ...

    @abstractmethod
    async def list_memories(
        self,
        agent_handle: str | None = None,
        status: Status = Status.ACTIVE,
        limit: int | None = 50,
        offset: int = 0,
    ) -> list[Memory]:
        """Memories newest first, optionally for one agent."""
        ...

    @abstractmethod
    async def count(
        self, agent_handle: str | None = None, status: Status = Status.ACTIVE
    ) -> int:
        """Number of memories, optionally for one agent."""
        ...

    @abstractmethod
    async def touch(self, memory_ids: list[str], at: datetime) -> None:
        """Record an access: bump access_count and last_accessed_at."""
        ...

    @abstractmethod
    async def clear(self, agent_handle: str | None, at: datetime) -> int:
        """Soft-delete active and archived memories, for one agent or all."""
        ...
