"""
CLI interface for the semantic memory.

Usage:
    quorum setup
    quorum store "Title" "Body text" --type note --tag design
    quorum event decision "Adopt Postgres" "Replaces SQLite in prod"
    quorum search "postgres migration"
    quorum worker --interval 30
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import Annotated, Any

import typer

from quorum import __version__
from quorum._quorum import Quorum
from quorum._quorum_async import QuorumAsync
from quorum.config import QuorumSettings
from quorum.embedding.backlog import BacklogWorker
from quorum.search.retriever import SearchScope

logger = logging.getLogger("quorum.cli")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]

app = typer.Typer(
    name="quorum",
    help="Persistent semantic memory for documents, events, and tasks.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]
LimitOption = Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum results")]


def _open_quorum(settings: QuorumSettings) -> Quorum:
    return Quorum(settings)


def _settings(ctx: typer.Context) -> QuorumSettings:
    settings: QuorumSettings = ctx.obj
    return settings


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"quorum {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    database_url: Annotated[str | None, typer.Option(
        "--db", help="Database URL (overrides QUORUM_DATABASE_URL)"
    )] = None,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v", help="Enable debug logging"
    )] = False,
    version: Annotated[bool | None, typer.Option(
        "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    )] = None,
) -> None:
    """Load settings and configure logging for every command."""
    overrides: dict[str, Any] = {}
    if database_url:
        overrides["database_url"] = database_url
    if verbose:
        overrides["log_level"] = "DEBUG"
    settings = QuorumSettings(**overrides)
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    ctx.obj = settings


# ----------------------------------------------------------------------
# Setup and status
# ----------------------------------------------------------------------


@app.command()
def setup(ctx: typer.Context) -> None:
    """Create the database schema and check integrations."""
    with _open_quorum(_settings(ctx)) as q:
        q.setup()
        typer.echo("Schema ready")
        health = q.integration_status()
    for name, component in health.components.items():
        typer.echo(f"  {name}: {component.status}")
    if health.overall != "healthy":
        typer.echo("Some integrations are unavailable; content will be embedded later.", err=True)


@app.command()
def status(ctx: typer.Context, output_json: JsonOption = False) -> None:
    """Show integration health and memory statistics."""
    with _open_quorum(_settings(ctx)) as q:
        health = q.integration_status()
        stats = q.stats()

    if output_json:
        _echo_json({
            "overall": health.overall,
            "components": {
                name: {"status": c.status, **c.details} for name, c in health.components.items()
            },
            "stats": {
                "documents": stats.documents,
                "events": stats.events,
                "tasks": stats.tasks,
                "embeddings": stats.embeddings,
                "unembedded_documents": stats.unembedded_documents,
                "unembedded_events": stats.unembedded_events,
            },
        })
        return

    typer.echo(f"Overall: {health.overall}")
    for name, component in health.components.items():
        typer.echo(f"  {name}: {component.status}")
        for key, value in component.details.items():
            typer.echo(f"    {key}: {value}")
    typer.echo(
        f"Documents: {stats.documents} ({stats.unembedded_documents} awaiting embedding)"
    )
    typer.echo(f"Events: {stats.events} ({stats.unembedded_events} awaiting embedding)")
    typer.echo(f"Tasks: {stats.tasks}")
    typer.echo(f"Embeddings: {stats.embeddings}")


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------


@app.command()
def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Search query text")],
    ref_type: Annotated[SearchScope, typer.Option(
        "--type", "-t", help="Restrict to documents or events"
    )] = SearchScope.ALL,
    limit: LimitOption = 10,
    output_json: JsonOption = False,
) -> None:
    """Semantic search across documents and events."""
    with _open_quorum(_settings(ctx)) as q:
        response = q.search(query, ref_type=ref_type, limit=limit)

    if output_json:
        _echo_json({
            "mode": response.mode.value,
            "fallback_reason": response.fallback_reason,
            "results": [
                {
                    "id": hit.id,
                    "kind": hit.kind,
                    "type": hit.type_label,
                    "title": hit.title,
                    "score": hit.score,
                    "preview": hit.preview,
                }
                for hit in response.hits
            ],
        })
        return

    if not response.semantic:
        typer.echo(f"Semantic search unavailable ({response.fallback_reason}); text matches:")
    if not response.hits:
        typer.echo("No results")
        return
    for hit in response.hits:
        score = f"{hit.score:.3f}" if hit.score is not None else "  -  "
        typer.echo(f"{score}  [{hit.kind}:{hit.type_label}] {hit.title}  ({hit.id})")
        typer.echo(f"       {hit.preview}")


# ----------------------------------------------------------------------
# Content
# ----------------------------------------------------------------------


@app.command()
def store(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Document title")],
    content: Annotated[str, typer.Argument(help="Document body")],
    doc_type: Annotated[str, typer.Option("--type", help="Document type label")] = "note",
    tags: Annotated[list[str] | None, typer.Option(
        "--tag", help="Tag (repeatable)"
    )] = None,
) -> None:
    """Store a document and embed it when the provider is available."""
    with _open_quorum(_settings(ctx)) as q:
        result = q.store_document(title, content, doc_type=doc_type, tags=tags)
    typer.echo(f"{result.message} (embedding: {result.embedding_status.value})")


@app.command()
def event(
    ctx: typer.Context,
    event_type: Annotated[str, typer.Argument(
        help="decision, insight, critique, opportunity, milestone, error, observation"
    )],
    title: Annotated[str, typer.Argument(help="Event title")],
    description: Annotated[str, typer.Argument(help="Event description")] = "",
) -> None:
    """Record an event."""
    with _open_quorum(_settings(ctx)) as q:
        result = q.store_event(event_type, title, description)
    if not result.success:
        typer.echo(result.message, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{result.message} (embedding: {result.embedding_status.value})")


@app.command()
def task(
    ctx: typer.Context,
    title: Annotated[str | None, typer.Argument(help="Task title (required when creating)")] = None,
    task_id: Annotated[str | None, typer.Option("--id", help="Update this task instead")] = None,
    description: Annotated[str | None, typer.Option("--description", "-d")] = None,
    status_: Annotated[str | None, typer.Option(
        "--status", help="open, in_progress, blocked, done, cancelled"
    )] = None,
    priority: Annotated[str | None, typer.Option(
        "--priority", "-p", help="critical, high, medium, low"
    )] = None,
    owner: Annotated[str | None, typer.Option("--owner")] = None,
    due: Annotated[datetime | None, typer.Option("--due", formats=DATE_FORMATS)] = None,
) -> None:
    """Create a task, or update one with --id."""
    fields: dict[str, Any] = {
        key: value
        for key, value in {
            "title": title,
            "description": description,
            "status": status_,
            "priority": priority,
            "owner": owner,
            "due_at": due,
        }.items()
        if value is not None
    }
    with _open_quorum(_settings(ctx)) as q:
        result = q.save_task(task_id, **fields)
    if not result.success:
        typer.echo(result.message, err=True)
        raise typer.Exit(code=1)
    typer.echo(result.message)


@app.command()
def tasks(
    ctx: typer.Context,
    status_: Annotated[str | None, typer.Option("--status")] = None,
    priority: Annotated[str | None, typer.Option("--priority", "-p")] = None,
    owner: Annotated[str | None, typer.Option("--owner")] = None,
    limit: LimitOption = 50,
    output_json: JsonOption = False,
) -> None:
    """List tasks, most urgent first."""
    with _open_quorum(_settings(ctx)) as q:
        found = q.list_tasks(status=status_, priority=priority, owner=owner, limit=limit)

    if output_json:
        _echo_json([t.model_dump(mode="json") for t in found])
        return
    if not found:
        typer.echo("No tasks")
        return
    for t in found:
        due_at = f" due {t.due_at:%Y-%m-%d}" if t.due_at else ""
        owner_label = f" @{t.owner}" if t.owner else ""
        typer.echo(f"[{t.priority}/{t.status}] {t.title}{owner_label}{due_at}  ({t.id})")


# ----------------------------------------------------------------------
# Backlog
# ----------------------------------------------------------------------


@app.command()
def backlog(ctx: typer.Context) -> None:
    """Embed everything that has no embedding yet (one cycle)."""
    with _open_quorum(_settings(ctx)) as q:
        result = q.process_backlog()
    typer.echo(f"Processed: {result.processed}, errors: {result.errors}")


@app.command()
def worker(
    ctx: typer.Context,
    interval: Annotated[float | None, typer.Option(
        "--interval", min=0.1, help="Seconds between cycles (default from settings)"
    )] = None,
) -> None:
    """Run the backlog worker until interrupted."""
    settings = _settings(ctx)
    try:
        asyncio.run(_run_worker(settings, interval or settings.poll_interval))
    except KeyboardInterrupt:
        typer.echo("Worker stopped")


async def _run_worker(settings: QuorumSettings, interval: float) -> None:
    async with QuorumAsync(settings) as q:
        await q.setup()
        logger.info("Backlog worker started (interval=%.1fs)", interval)
        await BacklogWorker(q.backlog, interval=interval).run_forever()


def main() -> None:
    app()
