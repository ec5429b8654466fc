"""Prompt context - relevant memories formatted for a system prompt."""

from dataclasses import dataclass, field

from recollect.core.config import Settings, get_settings
from recollect.core.logging import get_logger
from recollect.memory.base import SearchOptions, SearchResult
from recollect.memory.store import MemoryStore

logger = get_logger("memory.context")


@dataclass
class MemoryContext:
    memories: list[SearchResult] = field(default_factory=list)
    section: str = ""


async def build_memory_context(
    store: MemoryStore,
    query: str,
    agent_handle: str | None = None,
    path_scope: str | None = None,
    settings: Settings | None = None,
) -> MemoryContext | None:
    """Retrieve memories relevant to query. None when nothing matches.

    Scope "agent" restricts the search to the agent's own (and global)
    memories; "global" and "hybrid" search everything and let similarity
    decide.
    """
    settings = settings or get_settings()
    scope = settings.memory_scope.lower()
    agent_filter = agent_handle if scope == "agent" else None

    results = await store.search(
        query,
        SearchOptions(
            agent_handle=agent_filter,
            path_scope=path_scope,
            threshold=settings.retrieval_threshold,
            limit=settings.retrieval_limit,
        ),
    )
    if not results:
        return None

    logger.debug(f"Retrieved {len(results)} memories for prompt context")
    return MemoryContext(memories=results, section=format_memory_section(results, agent_handle))


def format_memory_section(results: list[SearchResult], agent_handle: str | None = None) -> str:
    if not results:
        return ""

    lines = [
        "<user_context>",
        "The following memories were retrieved from previous interactions with this user.",
        "Use this context to provide more personalized and contextual responses.",
        "",
    ]
    for i, r in enumerate(results, 1):
        memory = r.memory
        lines.append(f"{i}. [{memory.category.value}] {memory.content}")

        meta = []
        if memory.agent_handle and memory.agent_handle != agent_handle:
            meta.append(f"from: {memory.agent_handle}")
        if memory.path_scope:
            meta.append(f"path: {memory.path_scope}")
        if meta:
            lines.append(f"   ({', '.join(meta)})")

    lines.append("</user_context>")
    return "\n".join(lines) + "\n"


def inject_memory_context(system_prompt: str, context: MemoryContext | None) -> str:
    """Append the memory section to a system prompt."""
    if context is None or not context.section:
        return system_prompt
    return f"{system_prompt}\n\n{context.section}"
