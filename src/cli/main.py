"""lifegraph command line."""

import sys
from pathlib import Path

import click

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from cli.commands import decay, entities, ingest, show, stats, synthesize
from cli.config import load_config
from cli.logging_config import setup_logging


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
def cli(verbose: bool, json_logs: bool):
    """lifegraph - personal knowledge graph memory."""
    try:
        config = load_config()
    except ValueError:
        # Commands report config errors themselves; log with defaults meanwhile
        setup_logging(json_mode=json_logs, level="DEBUG" if verbose else "WARNING")
        return

    level = "DEBUG" if verbose else config.logging.level
    setup_logging(
        json_mode=json_logs or config.logging.json_mode,
        level=level,
        log_file=config.paths.log_file,
    )


cli.add_command(ingest)
cli.add_command(synthesize)
cli.add_command(entities)
cli.add_command(show)
cli.add_command(stats)
cli.add_command(decay)


if __name__ == "__main__":
    cli()
