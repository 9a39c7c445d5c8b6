"""Shared CLI utilities."""

import sys

import structlog
from rich.console import Console

console = Console()
logger = structlog.get_logger()


def get_components():
    """Load config and build the memory pipeline.

    Exits with status 1 when the config file is invalid or the store cannot be opened.
    """
    from cli.config import build_pipeline, load_config
    from memory.store import StoreError

    try:
        config = load_config()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {e}")
        sys.exit(1)

    try:
        pipeline = build_pipeline(config)
    except StoreError as e:
        console.print(f"[red]Database error:[/] {e}")
        sys.exit(1)

    return {
        "config": config,
        "store": pipeline.store,
        "pipeline": pipeline,
    }


def parse_entity_type(value: str | None):
    """click callback helper: 'person' -> EntityType.PERSON, None passes through."""
    if value is None:
        return None
    from memory.models import EntityType

    return EntityType(value.lower())
