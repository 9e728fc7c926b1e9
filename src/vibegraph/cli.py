"""vibegraph command line: inspect, search, match and maintain a cultural graph.

Usage:
    vibegraph status
    vibegraph recent --limit 5
    vibegraph match "dinner with startup founders" --region US-West --avoid politics
    vibegraph prune --dry-run
    vibegraph export --since "7 days ago" > vibes.json
"""

import json
import logging
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import load_settings
from .embeddings import get_embedder
from .matchers import MatcherRegistry, PersonalizedMatcher, SemanticMatcher
from .models import Scenario, UserProfile, Vibe
from .service import ZeitgeistService
from .sqlite_store import SqliteGraphStore
from .store import GraphStoreError
from .timeutil import format_relative_time, parse_time_reference
from .vectors import EmbeddingValidationError

console = Console()


def _service(ctx: click.Context) -> ZeitgeistService:
    """Build the service on first use; the embedder is only created when needed."""
    obj = ctx.obj
    if "service" not in obj:
        settings = obj["settings"]
        store = SqliteGraphStore(
            settings.db_path,
            max_vibes=settings.max_vibes,
            valid_dimensions=settings.embedding_dimensions,
        )
        embedder = obj.get("embedder")
        if embedder is None:
            embedder = get_embedder(settings)

        matchers = MatcherRegistry()
        matchers.register(SemanticMatcher(embedder))
        matchers.register(PersonalizedMatcher(embedder))
        if matchers.get(settings.default_matcher):
            matchers.set_default(settings.default_matcher)

        obj["service"] = ZeitgeistService(store, embedder, matchers=matchers, settings=settings)
    return obj["service"]


def _store(ctx: click.Context) -> SqliteGraphStore:
    obj = ctx.obj
    if "service" in obj:
        return obj["service"].store
    if "store" not in obj:
        settings = obj["settings"]
        obj["store"] = SqliteGraphStore(
            settings.db_path,
            max_vibes=settings.max_vibes,
            valid_dimensions=settings.embedding_dimensions,
        )
    return obj["store"]


def _vibe_table(title: str, vibes: list[Vibe]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Strength", justify="right")
    table.add_column("Relevance", justify="right")
    table.add_column("Last seen")
    for vibe in vibes:
        table.add_row(
            vibe.id,
            vibe.name,
            vibe.category,
            f"{vibe.strength:.2f}",
            f"{vibe.current_relevance:.2f}",
            format_relative_time(vibe.last_seen),
        )
    return table


@click.group()
@click.option(
    "--db-path",
    envvar="VIBEGRAPH_DB_PATH",
    type=click.Path(path_type=Path),
    help="Path to the graph database",
)
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.yaml")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, db_path, config_path, verbose):
    """vibegraph - temporal cultural graph."""
    ctx.ensure_object(dict)
    settings = load_settings(config_path)
    if db_path:
        settings.db_path = db_path

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    ctx.obj["settings"] = settings


@cli.command()
@click.pass_context
def status(ctx):
    """Show graph size, categories and top vibes."""
    service = _service(ctx)
    st = service.graph_status()

    console.print(f"Graph: [bold]{st['total_vibes']}[/bold] vibes, [bold]{st['total_edges']}[/bold] edges")
    console.print(f"Last updated: {st['last_updated']}")
    if st["categories"]:
        parts = ", ".join(f"{cat}: {n}" for cat, n in sorted(st["categories"].items()))
        console.print(f"Categories: {parts}")
    console.print()

    if not st["top_vibes"]:
        console.print("[dim]No vibes yet[/dim]")
        return

    table = Table(title="Top vibes")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Relevance", justify="right")
    for summary in st["top_vibes"]:
        table.add_row(summary["name"], summary["category"], f"{summary['current_relevance']:.2f}")
    console.print(table)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx, as_json):
    """Temporal statistics: ages and relevance buckets."""
    temporal = _service(ctx).graph_status()["temporal"]

    if as_json:
        click.echo(json.dumps(temporal, indent=2))
        return

    console.print(f"Total vibes:          {temporal['total_vibes']}")
    console.print(f"Average age:          {temporal['average_age_days']:.1f} days")
    console.print(f"Average since seen:   {temporal['average_days_since_last_seen']:.1f} days")
    console.print(f"Average relevance:    {temporal['average_relevance']:.2f}")
    console.print(f"  [green]High (>0.7)[/green]:     {temporal['highly_relevant']}")
    console.print(f"  [yellow]Moderate[/yellow]:        {temporal['moderately_relevant']}")
    console.print(f"  [dim]Low[/dim]:             {temporal['low_relevance']}")
    console.print(f"  [red]Decayed[/red]:         {temporal['decayed']}")


@cli.command()
@click.option("-n", "--limit", default=10, help="Number of vibes to show")
@click.pass_context
def recent(ctx, limit):
    """Show the most recently updated vibes."""
    vibes = _store(ctx).find_recent(limit)
    if not vibes:
        console.print("[dim]No vibes yet[/dim]")
        return
    console.print(_vibe_table("Recent vibes", vibes))


@cli.command()
@click.argument("vibe_id")
@click.pass_context
def show(ctx, vibe_id):
    """Show one vibe and its edges."""
    store = _store(ctx)
    vibe = store.get(vibe_id)
    if vibe is None:
        console.print(f"[red]Error:[/red] Vibe not found: {vibe_id}")
        return

    console.print(f"[bold cyan]{vibe.name}[/bold cyan] [dim]({vibe.id})[/dim]")
    console.print(f"Category: {vibe.category}  Sentiment: {vibe.sentiment}")
    if vibe.description:
        console.print(vibe.description)
    console.print(f"Strength: {vibe.strength:.2f}  Relevance: {vibe.current_relevance:.2f}")
    console.print(f"First seen: {format_relative_time(vibe.first_seen)}  Last seen: {format_relative_time(vibe.last_seen)}")
    if vibe.keywords:
        console.print(f"Keywords: {', '.join(vibe.keywords)}")
    if vibe.geography is not None:
        console.print(f"Region: {vibe.geography.primary}")

    edges = store.get_edges(vibe_id)
    if edges:
        console.print()
        for edge in edges:
            console.print(f"  {edge.from_id} --{edge.type} ({edge.strength:.2f})--> {edge.to_id}")


@cli.command()
@click.option("--threshold", type=float, default=None, help="Relevance threshold (default from config)")
@click.option("--dry-run", is_flag=True, help="List vibes that would be pruned")
@click.pass_context
def prune(ctx, threshold, dry_run):
    """Delete vibes that have decayed below the threshold."""
    pruned = _service(ctx).prune_decayed(threshold=threshold, dry_run=dry_run)

    if not pruned:
        console.print("[green]Nothing to prune[/green]")
        return

    verb = "Would prune" if dry_run else "Pruned"
    console.print(f"{verb} {len(pruned)} vibe(s):")
    for vibe in pruned:
        console.print(f"  [red]-[/red] {vibe.name} ({vibe.current_relevance:.3f})")


@cli.command()
@click.argument("query")
@click.option("-n", "--limit", default=20, help="Maximum results")
@click.pass_context
def search(ctx, query, limit):
    """Semantic search over vibes."""
    results = _service(ctx).search(query, limit=limit)
    if not results:
        console.print("[dim]No matches[/dim]")
        return
    console.print(_vibe_table(f"Results for '{query}'", results))


@cli.command()
@click.argument("description")
@click.option("--region", help="Requester's region, e.g. US-West")
@click.option("--interest", "interests", multiple=True, help="Interest (repeatable)")
@click.option("--avoid", "avoid", multiple=True, help="Topic to avoid (repeatable)")
@click.option("--strategy", help="Matcher name (semantic, personalized)")
@click.pass_context
def match(ctx, description, region, interests, avoid, strategy):
    """Rank vibes for a scenario."""
    profile = None
    if region or interests or avoid:
        profile = UserProfile(region=region, interests=list(interests), avoid_topics=list(avoid))

    try:
        matches = _service(ctx).match(Scenario(description=description), profile, strategy)
    except KeyError as e:
        console.print(f"[red]Error:[/red] Unknown strategy {escape(str(e))}")
        return

    if not matches:
        console.print("[dim]No relevant vibes[/dim]")
        return

    table = Table(title="Matches")
    table.add_column("Score", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Reasoning", style="dim")
    for m in matches:
        table.add_row(f"{m.relevance_score:.2f}", m.vibe.name, m.reasoning)
    console.print(table)


@cli.command()
@click.argument("vibe_id")
@click.pass_context
def delete(ctx, vibe_id):
    """Delete a vibe and every edge touching it."""
    if _store(ctx).delete(vibe_id):
        console.print(f"[green]✓[/green] Deleted {vibe_id}")
    else:
        console.print(f"[yellow]![/yellow] Vibe not found: {vibe_id}")


@cli.command(name="import")
@click.argument("file", type=click.Path(exists=True, path_type=Path))
@click.pass_context
def import_vibes(ctx, file):
    """Import vibes from a JSON list. All or nothing."""
    try:
        data = json.loads(file.read_text())
        if not isinstance(data, list):
            raise ValueError("expected a JSON list of vibes")
        vibes = [Vibe.model_validate(item) for item in data]
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Error:[/red] Invalid import file: {escape(str(e))}")
        return

    try:
        _store(ctx).put_many(vibes)
    except (EmbeddingValidationError, GraphStoreError) as e:
        console.print(f"[red]Error:[/red] Import rejected: {escape(str(e))}")
        return

    console.print(f"[green]✓[/green] Imported {len(vibes)} vibe(s)")


@cli.command()
@click.option("--since", help="Only vibes seen since (ISO, relative, or named)")
@click.pass_context
def export(ctx, since):
    """Export vibes as JSON to stdout."""
    vibes = _store(ctx).get_all()

    if since:
        try:
            cutoff = parse_time_reference(since)
        except ValueError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            return
        vibes = [v for v in vibes if v.last_seen >= cutoff]

    click.echo(json.dumps([v.model_dump(mode="json") for v in vibes], indent=2))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
