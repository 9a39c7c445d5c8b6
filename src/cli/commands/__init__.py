"""CLI command modules."""

from .memory import decay, entities, ingest, show, stats, synthesize

__all__ = [
    "ingest",
    "synthesize",
    "entities",
    "show",
    "stats",
    "decay",
]
