"""Memory CLI commands: ingest, synthesize, entities, show, stats, decay."""

import json
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cli.utils import get_components, parse_entity_type

console = Console()

TYPE_CHOICE = click.Choice(["person", "company", "project"], case_sensitive=False)


def _load_mentions(raw: str):
    from memory.models import ExtractedMention

    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("expected a JSON list of mentions")
    mentions = []
    for i, item in enumerate(data):
        if not isinstance(item, dict) or not item.get("name") or not item.get("type"):
            raise ValueError(f"mention {i} needs 'name' and 'type'")
        facts = item.get("facts") or []
        if not isinstance(facts, list):
            raise ValueError(f"mention {i}: 'facts' must be a list")
        mentions.append(
            ExtractedMention(
                name=str(item["name"]),
                type=str(item["type"]).lower(),
                facts=[str(f) for f in facts],
            )
        )
    return mentions


def _find(store, slug: str, entity_type: str):
    entity = store.find_entity(parse_entity_type(entity_type), slug)
    if entity is None:
        console.print(f"[red]Entity not found: {entity_type}/{slug}[/]")
    return entity


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--source", "source_id", default=None, help="Source document id (default: file name)")
@click.option("--text", "raw_text", is_flag=True, help="FILE is raw text; run it through the extractor")
def ingest(file: Path, source_id: str | None, raw_text: bool):
    """Resolve mentions from FILE and merge their facts into the graph.

    FILE is a JSON list of {"name", "type", "facts"} objects unless --text is given.
    """
    c = get_components()
    pipeline = c["pipeline"]
    source_id = source_id or file.name
    content = file.read_text()

    if raw_text:
        with console.status("Extracting mentions..."):
            result = pipeline.process_text(source_id, content)
    else:
        try:
            mentions = _load_mentions(content)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            console.print(f"[red]Invalid mentions file:[/] {e}")
            sys.exit(1)
        result = pipeline.ingest(mentions, source_id, source_text=None)

    if not result.resolved:
        console.print("[yellow]No mentions to ingest.[/]")
        return

    table = Table(title=f"Resolved mentions ({source_id})")
    table.add_column("Mention")
    table.add_column("Type", style="green")
    table.add_column("Decision")
    table.add_column("Conf", width=5)
    table.add_column("Reason", style="dim")

    for r in result.resolved:
        decision = "[cyan]new[/]" if r.is_new else f"-> {r.match.name}"
        table.add_row(
            r.mention.name, r.mention.type.value, decision, f"{r.confidence:.2f}", r.reason
        )
    console.print(table)
    console.print(
        f"[green]Ingested:[/] {len(result.created)} new entities, "
        f"{result.facts_added} facts added, {result.facts_skipped} redundant"
    )


@click.command()
@click.option("--stale-only", is_flag=True, help="Only regenerate summaries flagged by merges")
def synthesize(stale_only: bool):
    """Retier facts, archive cold ones and regenerate summaries."""
    c = get_components()
    pipeline = c["pipeline"]

    if stale_only:
        count = pipeline.synthesizer.refresh_stale()
        console.print(f"[green]Regenerated[/] {count} stale summaries")
        return

    cancel = threading.Event()
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(pipeline.run_synthesis, cancel)
        try:
            while True:
                try:
                    result = future.result(timeout=0.5)
                    break
                except TimeoutError:
                    continue
        except KeyboardInterrupt:
            cancel.set()
            console.print("\n[yellow]Cancelling after the current entity...[/]")
            result = future.result()

    console.print(
        f"Processed {result.processed} entities, archived {result.archived} facts, "
        f"regenerated {result.regenerated} summaries"
    )
    if result.cancelled:
        console.print("[yellow]Synthesis cancelled before finishing.[/]")
    for err in result.errors:
        console.print(f"[red]{err}[/]")


@click.command()
@click.option("--type", "-t", "entity_type", type=TYPE_CHOICE, default=None, help="Filter by type")
def entities(entity_type: str | None):
    """List entities in the graph."""
    c = get_components()
    rows = c["store"].list_entities(parse_entity_type(entity_type))

    if not rows:
        console.print("No entities stored.")
        return

    table = Table(title="Entities")
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Type", style="green")
    table.add_column("Facts", width=6)
    table.add_column("Summary")

    for e in rows:
        summary = e.summary[:60] if e.summary else "[dim]none[/]"
        if e.needs_summary:
            summary += " [yellow](stale)[/]"
        table.add_row(e.slug, e.name, e.type.value, str(len(e.active_facts)), summary)

    console.print(table)


@click.command()
@click.argument("slug")
@click.option("--type", "-t", "entity_type", type=TYPE_CHOICE, required=True)
@click.option("--no-track", is_flag=True, help="Do not count this read as an access")
def show(slug: str, entity_type: str, no_track: bool):
    """Show an entity's summary and facts."""
    c = get_components()
    entity = _find(c["store"], slug, entity_type)
    if entity is None:
        return

    if not no_track:
        c["pipeline"].record_access(entity.id)

    console.print(f"[bold]{entity.name}[/] ({entity.type.value})")
    console.print(f"ID: {entity.id}")
    console.print(f"Summary: {entity.summary or '[dim]none[/]'}")
    if entity.summarized_at:
        console.print(f"Summarized: {entity.summarized_at:%Y-%m-%d %H:%M}")

    if not entity.facts:
        return

    table = Table(title="Facts")
    table.add_column("ID", style="dim", width=8)
    table.add_column("Status", width=10)
    table.add_column("Tier", width=5)
    table.add_column("Fact")
    table.add_column("Source", width=12)
    table.add_column("Reads", width=5)

    for f in entity.facts:
        table.add_row(
            f.id[:8],
            f.status.value,
            f.tier.value if f.tier else "-",
            f.text[:80],
            f.source_id[:12],
            str(f.access_count),
        )
    console.print(table)


@click.command()
def stats():
    """Entity and fact counts."""
    c = get_components()
    s = c["store"].get_stats()

    console.print(f"Entities: {s['entities']}")
    for entity_type, cnt in sorted(s["by_type"].items()):
        console.print(f"  {entity_type}: {cnt}")
    console.print("Facts:")
    for status, cnt in sorted(s["facts_by_status"].items()):
        console.print(f"  {status}: {cnt}")
    if s["active_by_tier"]:
        console.print("Active facts by tier:")
        for tier, cnt in sorted(s["active_by_tier"].items()):
            console.print(f"  {tier}: {cnt}")
    console.print(f"Stale summaries: {s['stale_summaries']}")


@click.command()
@click.argument("slug")
@click.option("--type", "-t", "entity_type", type=TYPE_CHOICE, required=True)
def decay(slug: str, entity_type: str):
    """Show how an entity's facts are spread across hot/warm/cold tiers."""
    c = get_components()
    store = c["store"]
    entity = _find(store, slug, entity_type)
    if entity is None:
        return

    tiers = c["pipeline"].synthesizer.decay_stats(entity)
    access = store.access_stats(entity.id)

    console.print(f"[bold]{entity.name}[/] ({entity.type.value})")
    console.print(
        f"Hot: {tiers['hot']}  Warm: {tiers['warm']}  Cold: {tiers['cold']}  "
        f"Total: {tiers['total']}"
    )
    last = access["last_accessed"]
    console.print(
        f"Accesses: {access['total_accesses']}, "
        f"last: {last.strftime('%Y-%m-%d %H:%M') if last else 'never'}"
    )
