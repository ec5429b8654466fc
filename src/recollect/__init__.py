"""
Recollect - semantic memory for agent runtimes.

Package structure:
- core: Config and logging
- embedding: Vector ops, tokenizer, local and provider embedders
- memory: Memory store, persistence, formation pipeline, triggers
"""

__version__ = "0.1.0"
