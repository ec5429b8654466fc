"""Memory store - lifecycle operations and semantic search over a backend."""

from datetime import datetime
from uuid import uuid4

from recollect.core.logging import get_logger
from recollect.embedding.base import Embedder, EmbeddingError
from recollect.embedding.vectors import cosine_similarity, top_k
from recollect.memory.base import (
    AmbiguousPrefixError,
    Memory,
    MemoryBackend,
    MemoryNotFoundError,
    SearchOptions,
    SearchResult,
    Status,
    SupersessionError,
)

logger = get_logger("memory.store")

MAX_HISTORY_DEPTH = 100


class MemoryStore:
    """Sole writer of memory lifecycle transitions.

    Content is embedded at write time when an embedder is configured;
    search is a linear scan over the active candidates in scope. There is
    no locking here beyond what the backend provides.
    """

    def __init__(self, backend: MemoryBackend, embedder: Embedder | None = None):
        self.backend = backend
        self.embedder = embedder

    @property
    def has_embedder(self) -> bool:
        return self.embedder is not None

    async def create(self, memory: Memory) -> Memory:
        """Store a new memory, embedding its content if possible.

        Embedding failure is not fatal: the memory is stored without a
        vector and can be embedded later with embed_missing().
        """
        if not memory.id:
            memory.id = str(uuid4())
        now = datetime.now()
        memory.created_at = now
        memory.updated_at = now
        if memory.confidence <= 0:
            memory.confidence = 1.0

        if self.embedder is not None and not memory.embedding:
            memory.embedding = await self._try_embed(memory.content)

        await self.backend.insert(memory)
        logger.debug(f"Created memory {memory.short_id} ({memory.category.value})")
        return memory

    async def get(self, memory_id: str) -> Memory:
        memory = await self.backend.get(memory_id)
        if memory is None:
            raise MemoryNotFoundError(f"Memory not found: {memory_id}")
        return memory

    async def get_by_prefix(self, prefix: str) -> Memory:
        """Exact id, else the single active memory whose id starts with prefix."""
        memory = await self.backend.get(prefix)
        if memory is not None:
            return memory

        matches = [
            m
            for m in await self.backend.list_memories(status=Status.ACTIVE, limit=None)
            if m.id.startswith(prefix)
        ]
        if not matches:
            raise MemoryNotFoundError(f"No memory matches prefix: {prefix}")
        if len(matches) > 1:
            raise AmbiguousPrefixError(prefix, len(matches))
        return matches[0]

    async def update(self, memory: Memory) -> Memory:
        """Save changed content/category/confidence; re-embed if content changed."""
        existing = await self.get(memory.id)
        memory.updated_at = datetime.now()

        if self.embedder is not None and (
            memory.content != existing.content or not memory.embedding
        ):
            # On failure the old vector is dropped; embed_missing() fills it in
            memory.embedding = await self._try_embed(memory.content)

        await self.backend.update(memory)
        return memory

    async def supersede(self, old_id: str, new_memory: Memory, reason: str) -> Memory:
        """Create new_memory as the replacement of old_id.

        Two steps with no transaction: if flipping the old record fails the
        new memory stays and SupersessionError is raised.
        """
        new_memory.supersedes_id = old_id
        new_memory.supersession_reason = reason
        created = await self.create(new_memory)

        try:
            flipped = await self.backend.mark_superseded(
                old_id, created.id, reason, datetime.now()
            )
        except Exception as e:
            logger.error(f"Supersede of {old_id} failed after creating {created.id}: {e}")
            raise SupersessionError(old_id, created, e) from e

        if not flipped:
            cause = MemoryNotFoundError(f"Memory not found or already superseded: {old_id}")
            raise SupersessionError(old_id, created, cause)

        logger.info(f"Memory {created.short_id} supersedes {old_id[:8]}: {reason}")
        return created

    async def forget(self, memory_id: str) -> bool:
        """Soft delete. Superseded memories keep their status."""
        await self.get(memory_id)
        changed = await self.backend.set_status(memory_id, Status.FORGOTTEN, datetime.now())
        if not changed:
            logger.debug(f"Memory {memory_id[:8]} not forgotten (superseded)")
        return changed

    async def archive(self, memory_id: str) -> bool:
        await self.get(memory_id)
        return await self.backend.set_status(memory_id, Status.ARCHIVED, datetime.now())

    async def delete(self, memory_id: str) -> bool:
        """Permanently remove a memory."""
        return await self.backend.delete(memory_id)

    async def list_memories(
        self,
        agent_handle: str | None = None,
        limit: int | None = 50,
        offset: int = 0,
        status: Status = Status.ACTIVE,
    ) -> list[Memory]:
        return await self.backend.list_memories(
            agent_handle=agent_handle, status=status, limit=limit, offset=offset
        )

    async def count(
        self, agent_handle: str | None = None, status: Status = Status.ACTIVE
    ) -> int:
        return await self.backend.count(agent_handle=agent_handle, status=status)

    async def clear(self, agent_handle: str | None = None) -> int:
        """Soft-delete every active memory for an agent, or all of them."""
        cleared = await self.backend.clear(agent_handle, datetime.now())
        logger.info(f"Cleared {cleared} memories" + (f" for {agent_handle}" if agent_handle else ""))
        return cleared

    async def history(self, memory_id: str) -> list[Memory]:
        """Supersession chain from memory_id back through what it replaced."""
        chain = [await self.get(memory_id)]
        seen = {memory_id}
        while chain[-1].supersedes_id and len(chain) < MAX_HISTORY_DEPTH:
            previous_id = chain[-1].supersedes_id
            if previous_id in seen:
                break
            previous = await self.backend.get(previous_id)
            if previous is None:
                break
            seen.add(previous_id)
            chain.append(previous)
        return chain

    async def search(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        """Semantic search by cosine similarity.

        Returns nothing without an embedder. Embedding the query may raise
        EmbeddingError; candidates with unusable vectors are skipped.
        Returned memories get their access stats bumped.
        """
        if self.embedder is None:
            return []
        options = options or SearchOptions()

        query_vector = await self.embedder.embed(query)

        candidates = await self.backend.candidates_for_search(
            agent_handle=options.agent_handle, path_scope=options.path_scope
        )
        categories = set(options.categories)

        results = []
        for memory in candidates:
            if not memory.embedding or len(memory.embedding) != len(query_vector):
                logger.warning(f"Skipping memory {memory.short_id}: unusable embedding")
                continue
            if categories and memory.category not in categories:
                continue

            similarity = cosine_similarity(query_vector, memory.embedding)
            if similarity < options.threshold:
                continue
            results.append(
                SearchResult(memory=memory, similarity=similarity, distance=1.0 - similarity)
            )

        results = top_k(results, options.limit)

        if results:
            now = datetime.now()
            await self.backend.touch([r.memory.id for r in results], now)
            for r in results:
                r.memory.last_accessed_at = now
                r.memory.access_count += 1

        logger.debug(f"Search returned {len(results)} of {len(candidates)} candidates")
        return results

    async def embed_missing(self, limit: int | None = None) -> int:
        """Backfill embeddings for active memories stored without one."""
        if self.embedder is None:
            return 0

        missing = [
            m
            for m in await self.backend.list_memories(status=Status.ACTIVE, limit=None)
            if not m.embedding
        ]
        if limit is not None:
            missing = missing[:limit]

        embedded = 0
        for memory in missing:
            vector = await self._try_embed(memory.content)
            if vector is None:
                continue
            memory.embedding = vector
            await self.backend.update(memory)
            embedded += 1

        if embedded:
            logger.info(f"Embedded {embedded} memories that had no vector")
        return embedded

    async def close(self) -> None:
        if self.embedder is not None:
            await self.embedder.close()
        await self.backend.close()

    async def _try_embed(self, text: str) -> list[float] | None:
        try:
            return await self.embedder.embed(text)
        except EmbeddingError as e:
            logger.warning(f"Embedding failed, storing without vector: {e}")
            return None
