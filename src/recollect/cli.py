"""
CLI entry point.

Commands:
- init: Initialize data directory and database
- store <content> [--category C] [--agent A] [--path P]: Remember something
- search <query> [--threshold T] [--limit N]: Semantic search
- list [--agent A]: Active memories, newest first
- show <id-prefix>: Memory details and supersession history
- forget <id-prefix>: Soft delete a memory
- clear [--agent A]: Soft delete all memories (for one agent)
- stats: Memory counts per status

Flags:
- --debug: Enable debug logging to file
"""

import asyncio
import logging
import sys

from recollect.core.config import Settings, get_settings
from recollect.core.logging import get_logger, setup_logging
from recollect.embedding import EmbeddingError, create_embedder
from recollect.memory.base import Category, MemoryStoreError, SearchOptions, Status
from recollect.memory.formation import FormationIntent, FormationService
from recollect.memory.sqlite import SQLiteMemoryBackend
from recollect.memory.store import MemoryStore

COMMANDS = ("init", "store", "search", "list", "show", "forget", "clear", "stats")


def _pop_option(args: list[str], name: str, default: str | None = None) -> str | None:
    """Remove `name value` from args and return value."""
    if name not in args:
        return default
    i = args.index(name)
    if i + 1 >= len(args):
        raise ValueError(f"{name} needs a value")
    value = args[i + 1]
    del args[i : i + 2]
    return value


def main() -> int:
    """Main entry point."""
    settings = get_settings()
    args = sys.argv[1:]

    debug_mode = "--debug" in args
    if debug_mode:
        args.remove("--debug")

    log_level = logging.DEBUG if debug_mode else logging.INFO
    log_file = settings.data_dir / "recollect.log"
    setup_logging(level=log_level, log_file=log_file)
    logger = get_logger("cli")

    logger.info(f"Logging to {log_file}" + (" (debug mode)" if debug_mode else ""))

    if not args:
        print("Usage: recollect [--debug] <command> [args]")
        print(f"Commands: {', '.join(COMMANDS)}")
        print("Flags: --debug (enable debug logging to data/recollect.log)")
        return 1

    command, rest = args[0], args[1:]
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        return 1

    try:
        return asyncio.run(_run(command, rest, settings))
    except (ValueError, MemoryStoreError, EmbeddingError) as e:
        logger.error(f"{command} failed: {e}")
        print(f"Error: {e}")
        return 1


async def _run(command: str, args: list[str], settings: Settings) -> int:
    if command == "init":
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        backend = SQLiteMemoryBackend(settings.db_path)
        await backend.connect()
        await backend.close()
        print(f"Created: {settings.db_path}")
        return 0

    store = await _open_store(settings, with_embedder=command in ("store", "search"))
    try:
        handler = {
            "store": _store,
            "search": _search,
            "list": _list,
            "show": _show,
            "forget": _forget,
            "clear": _clear,
            "stats": _stats,
        }[command]
        return await handler(store, args)
    finally:
        await store.close()


async def _open_store(settings: Settings, with_embedder: bool) -> MemoryStore:
    embedder = create_embedder(settings) if with_embedder else None
    backend = SQLiteMemoryBackend(settings.db_path)
    await backend.connect()
    return MemoryStore(backend, embedder)


async def _store(store: MemoryStore, args: list[str]) -> int:
    category = Category(_pop_option(args, "--category", Category.FACT.value))
    agent = _pop_option(args, "--agent")
    path = _pop_option(args, "--path")
    content = " ".join(args).strip()
    if not content:
        print("Usage: recollect store <content> [--category C] [--agent A] [--path P]")
        return 1

    service = FormationService(store)
    result = await service.form(
        FormationIntent(content=content, category=category, agent_handle=agent, path_scope=path)
    )
    if not result.success:
        print(f"Failed: {result.error}")
        return 1

    print(f"{result.outcome.value}: {result.memory.short_id} {result.memory.content}")
    if result.superseded_id:
        print(f"  supersedes {result.superseded_id[:8]}")
    return 0


async def _search(store: MemoryStore, args: list[str]) -> int:
    threshold = float(_pop_option(args, "--threshold", "0.5"))
    limit = int(_pop_option(args, "--limit", "10"))
    agent = _pop_option(args, "--agent")
    query = " ".join(args).strip()
    if not query:
        print("Usage: recollect search <query> [--threshold T] [--limit N]")
        return 1
    if not store.has_embedder:
        print("Embeddings are disabled; nothing to search.")
        return 1

    results = await store.search(
        query, SearchOptions(agent_handle=agent, threshold=threshold, limit=limit)
    )
    if not results:
        print("No matching memories.")
        return 0
    for r in results:
        print(f"{r.similarity:.3f}  {r.memory.short_id}  [{r.memory.category.value}] {r.memory.content}")
    return 0


async def _list(store: MemoryStore, args: list[str]) -> int:
    agent = _pop_option(args, "--agent")
    memories = await store.list_memories(agent_handle=agent)
    if not memories:
        print("No memories.")
        return 0
    for m in memories:
        scope = f" @{m.agent_handle}" if m.agent_handle else ""
        print(f"{m.short_id}  [{m.category.value}]{scope} {m.content}")
    return 0


async def _show(store: MemoryStore, args: list[str]) -> int:
    if not args:
        print("Usage: recollect show <id-prefix>")
        return 1
    memory = await store.get_by_prefix(args[0])
    for key, value in memory.to_dict().items():
        print(f"{key:>20}: {value}")

    chain = await store.history(memory.id)
    if len(chain) > 1:
        print("\nHistory:")
        for m in chain[1:]:
            print(f"  {m.short_id}  {m.status.value:<10} {m.content}")
    return 0


async def _forget(store: MemoryStore, args: list[str]) -> int:
    if not args:
        print("Usage: recollect forget <id-prefix>")
        return 1
    memory = await store.get_by_prefix(args[0])
    if await store.forget(memory.id):
        print(f"Forgot {memory.short_id}: {memory.content}")
        return 0
    print(f"Memory {memory.short_id} is {memory.status.value}; left unchanged.")
    return 1


async def _clear(store: MemoryStore, args: list[str]) -> int:
    agent = _pop_option(args, "--agent")
    cleared = await store.clear(agent)
    print(f"Cleared {cleared} memories.")
    return 0


async def _stats(store: MemoryStore, args: list[str]) -> int:
    for status in Status:
        print(f"{status.value:>12}: {await store.count(status=status)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
