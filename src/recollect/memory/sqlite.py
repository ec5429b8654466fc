"""SQLite memory backend with float32 BLOB embeddings."""

from datetime import datetime
from pathlib import Path

import aiosqlite

from recollect.core.logging import get_logger
from recollect.embedding.vectors import deserialize, serialize
from recollect.memory.base import (
    BackendNotConnectedError,
    Category,
    Memory,
    MemoryBackend,
    Status,
)

logger = get_logger("memory.sqlite")

SCHEMA = """
CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,

    -- Scope: NULL = global
    agent_handle TEXT,
    path_scope TEXT,

    content TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'fact',
    embedding BLOB,  -- little-endian float32

    -- Provenance
    source_session_id TEXT,
    source_message_id TEXT,

    -- Unix timestamps
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL,
    last_accessed_at REAL,
    access_count INTEGER DEFAULT 0,
    confidence REAL DEFAULT 1.0,

    -- Supersession chain
    supersedes_id TEXT,
    superseded_by_id TEXT,
    supersession_reason TEXT,

    status TEXT DEFAULT 'active'
);

CREATE INDEX IF NOT EXISTS idx_memories_agent ON memories(agent_handle, status);
CREATE INDEX IF NOT EXISTS idx_memories_path ON memories(path_scope, status);
CREATE INDEX IF NOT EXISTS idx_memories_status ON memories(status);
CREATE INDEX IF NOT EXISTS idx_memories_supersedes ON memories(supersedes_id);
CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at DESC);
"""

COLUMNS = (
    "id, agent_handle, path_scope, content, category, embedding, "
    "source_session_id, source_message_id, created_at, updated_at, "
    "last_accessed_at, access_count, confidence, supersedes_id, "
    "superseded_by_id, supersession_reason, status"
)


def _ts(dt: datetime | None) -> float | None:
    return dt.timestamp() if dt else None


def _dt(value: float | None) -> datetime | None:
    return datetime.fromtimestamp(value) if value is not None else None


def _row_to_memory(row: tuple) -> Memory:
    return Memory(
        id=row[0],
        agent_handle=row[1],
        path_scope=row[2],
        content=row[3],
        category=Category(row[4]),
        embedding=deserialize(row[5]) if row[5] is not None else None,
        source_session_id=row[6],
        source_message_id=row[7],
        created_at=_dt(row[8]),
        updated_at=_dt(row[9]),
        last_accessed_at=_dt(row[10]),
        access_count=row[11] or 0,
        confidence=row[12] if row[12] is not None else 1.0,
        supersedes_id=row[13],
        superseded_by_id=row[14],
        supersession_reason=row[15],
        status=Status(row[16] or Status.ACTIVE.value),
    )


class SQLiteMemoryBackend(MemoryBackend):
    """SQLite-backed memory persistence."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to memory backend: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise BackendNotConnectedError("Memory backend not connected. Call connect() first.")
        return self._conn

    async def insert(self, memory: Memory) -> None:
        await self.conn.execute(
            f"INSERT INTO memories ({COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                memory.id,
                memory.agent_handle,
                memory.path_scope,
                memory.content,
                memory.category.value,
                serialize(memory.embedding) if memory.embedding else None,
                memory.source_session_id,
                memory.source_message_id,
                _ts(memory.created_at),
                _ts(memory.updated_at),
                _ts(memory.last_accessed_at),
                memory.access_count,
                memory.confidence,
                memory.supersedes_id,
                memory.superseded_by_id,
                memory.supersession_reason,
                memory.status.value,
            ),
        )
        await self.conn.commit()

    async def update(self, memory: Memory) -> bool:
        cursor = await self.conn.execute(
            """UPDATE memories SET content = ?, category = ?, embedding = ?,
                      confidence = ?, updated_at = ?
               WHERE id = ?""",
            (
                memory.content,
                memory.category.value,
                serialize(memory.embedding) if memory.embedding else None,
                memory.confidence,
                _ts(memory.updated_at),
                memory.id,
            ),
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    async def mark_superseded(
        self, memory_id: str, superseded_by_id: str, reason: str, at: datetime
    ) -> bool:
        cursor = await self.conn.execute(
            """UPDATE memories SET status = ?, superseded_by_id = ?,
                      supersession_reason = ?, updated_at = ?
               WHERE id = ? AND status != ?""",
            (
                Status.SUPERSEDED.value,
                superseded_by_id,
                reason,
                _ts(at),
                memory_id,
                Status.SUPERSEDED.value,
            ),
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    async def set_status(self, memory_id: str, status: Status, at: datetime) -> bool:
        cursor = await self.conn.execute(
            "UPDATE memories SET status = ?, updated_at = ? WHERE id = ? AND status != ?",
            (status.value, _ts(at), memory_id, Status.SUPERSEDED.value),
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    async def delete(self, memory_id: str) -> bool:
        cursor = await self.conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
        # Dangling chain links would point at nothing
        await self.conn.execute(
            "UPDATE memories SET supersedes_id = NULL WHERE supersedes_id = ?", (memory_id,)
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    async def get(self, memory_id: str) -> Memory | None:
        async with self.conn.execute(
            f"SELECT {COLUMNS} FROM memories WHERE id = ?", (memory_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return _row_to_memory(row) if row else None

    async def candidates_for_search(
        self, agent_handle: str | None = None, path_scope: str | None = None
    ) -> list[Memory]:
        sql = f"""
            SELECT {COLUMNS} FROM memories
            WHERE status = ?
              AND embedding IS NOT NULL
              AND (? IS NULL OR agent_handle = ? OR agent_handle IS NULL)
              AND (? IS NULL OR path_scope = ? OR path_scope IS NULL)
        """
        params = (Status.ACTIVE.value, agent_handle, agent_handle, path_scope, path_scope)

        results = []
        async with self.conn.execute(sql, params) as cursor:
            async for row in cursor:
                results.append(_row_to_memory(row))
        return results

    async def list_memories(
        self,
        agent_handle: str | None = None,
        status: Status = Status.ACTIVE,
        limit: int | None = 50,
        offset: int = 0,
    ) -> list[Memory]:
        sql = f"SELECT {COLUMNS} FROM memories WHERE status = ?"
        params: list = [status.value]
        if agent_handle:
            sql += " AND agent_handle = ?"
            params.append(agent_handle)
        sql += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        # SQLite treats a negative LIMIT as unbounded
        params.extend([limit if limit is not None else -1, offset])

        results = []
        async with self.conn.execute(sql, params) as cursor:
            async for row in cursor:
                results.append(_row_to_memory(row))
        return results

    async def count(
        self, agent_handle: str | None = None, status: Status = Status.ACTIVE
    ) -> int:
        sql = "SELECT COUNT(*) FROM memories WHERE status = ?"
        params: list = [status.value]
        if agent_handle:
            sql += " AND agent_handle = ?"
            params.append(agent_handle)

        async with self.conn.execute(sql, params) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def touch(self, memory_ids: list[str], at: datetime) -> None:
        if not memory_ids:
            return
        await self.conn.executemany(
            """UPDATE memories SET last_accessed_at = ?, access_count = access_count + 1
               WHERE id = ?""",
            [(_ts(at), memory_id) for memory_id in memory_ids],
        )
        await self.conn.commit()

    async def clear(self, agent_handle: str | None, at: datetime) -> int:
        sql = "UPDATE memories SET status = ?, updated_at = ? WHERE status IN (?, ?)"
        params: list = [
            Status.FORGOTTEN.value,
            _ts(at),
            Status.ACTIVE.value,
            Status.ARCHIVED.value,
        ]
        if agent_handle:
            sql += " AND agent_handle = ?"
            params.append(agent_handle)

        cursor = await self.conn.execute(sql, params)
        await self.conn.commit()
        return cursor.rowcount
