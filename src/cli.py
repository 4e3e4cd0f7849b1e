"""
Command-line interface for the vme content pipeline.

Provides commands to initialize the database, run syncs, moderate or
tag a single submission, and run diagnostic checks.

Usage:
    vme-pipeline init-db                         # Create items/sync_logs tables
    vme-pipeline sync --mode incremental         # Sync issues since the watermark
    vme-pipeline sync --mode full                # Re-sync every accepted issue
    vme-pipeline moderate vme-im/vme-content 42  # Moderate one issue
    vme-pipeline classify 'I_kwDO...'            # Tag a stored item
    vme-pipeline sync-logs                       # Show recent sync runs
    vme-pipeline health                          # Check service health
"""

import asyncio
import json
import sys
from datetime import datetime

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """VME content pipeline - sync, moderation and tagging of submissions."""
    setup_logging(level="DEBUG" if debug else None)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.storage.database import Database
    from src.storage.repository import ItemRepository

    async def run():
        async with Database() as db:
            await ItemRepository(db).create_tables()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.option(
    "--mode",
    type=click.Choice(["incremental", "full"]),
    default="incremental",
    help="Sync mode",
)
@click.option(
    "--since",
    default=None,
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    help="Incremental watermark override (UTC)",
)
def sync(mode: str, since: datetime | None) -> None:
    """Sync accepted issues into the items table.

    Example:
        vme-pipeline sync --mode incremental --since 2024-05-01
        vme-pipeline sync --mode full
    """
    from src.services.pipeline import Pipeline
    from src.storage.database import Database
    from src.sync.schemas import SyncRequest

    if since is not None and mode != "incremental":
        raise click.UsageError("--since only applies to incremental mode")

    async def run():
        async with Database() as db, Pipeline(db) as pipeline:
            return await pipeline.orchestrator.sync(SyncRequest(mode=mode, since=since))

    result = asyncio.run(run())
    click.echo(json.dumps(result.to_response(), ensure_ascii=False, indent=2))

    if not result.success:
        sys.exit(1)


@main.command()
@click.argument("repo")
@click.argument("number", type=int)
@click.option("--dry-run", is_flag=True, help="Show the decision without writing to the tracker")
def moderate(repo: str, number: int, dry_run: bool) -> None:
    """Moderate issue NUMBER of REPO (owner/name).

    Example:
        vme-pipeline moderate vme-im/vme-content 42 --dry-run
    """
    from src.ingestion.github_client import FetchError
    from src.ingestion.schemas import RepoRef
    from src.services.pipeline import Pipeline

    try:
        repo_ref = RepoRef.parse(repo)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="REPO") from e

    async def run():
        async with Pipeline() as pipeline:
            issue = await pipeline.github.get_issue(repo_ref.owner, repo_ref.name, number)
            if dry_run:
                decision = await pipeline.moderator.decide(issue.body, exclude_id=issue.id)
                return decision.outcome, decision.actions
            outcome = await pipeline.moderator.moderate(
                repo_ref, number, issue.body, exclude_id=issue.id
            )
            return outcome, None

    try:
        outcome, actions = asyncio.run(run())
    except FetchError as e:
        click.echo(click.style(f"Could not fetch issue: {e}", fg="red"), err=True)
        sys.exit(1)

    color = "green" if outcome.type.value == "approved" else "yellow"
    click.echo(click.style(f"\nOutcome: {outcome.type.value}", fg=color, bold=True))
    if outcome.message:
        click.echo(f"Message: {outcome.message}")
    if outcome.categories:
        click.echo(f"Categories: {', '.join(outcome.categories)}")

    if actions is not None:
        click.echo("\nDry run - tracker actions not applied:")
        click.echo(f"  labels:  {', '.join(actions.labels) or '-'}")
        click.echo(f"  comment: {actions.comment or '-'}")
        click.echo(f"  close:   {actions.close}")


@main.command()
@click.argument("item_id")
@click.option("--force", is_flag=True, help="Re-tag items that already have tags")
def classify(item_id: str, force: bool) -> None:
    """Tag a stored item and persist the tags."""
    from src.storage.database import Database
    from src.storage.repository import ItemRepository
    from src.tagging.service import ContentTagger

    tagger = ContentTagger()
    if not tagger.is_configured:
        click.echo(click.style("Tagging API key not configured", fg="red"), err=True)
        sys.exit(1)

    async def run():
        try:
            async with Database() as db:
                return await tagger.classify_stored_item(ItemRepository(db), item_id, force=force)
        finally:
            await tagger.close()

    try:
        tags = asyncio.run(run())
    except LookupError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)

    if tags:
        click.echo(f"Tags for {item_id}: {', '.join(tags)}")
    else:
        click.echo(f"No tags extracted for {item_id}")


@main.command("sync-logs")
@click.option("--limit", default=20, help="Number of runs to show")
def sync_logs(limit: int) -> None:
    """Show the most recent sync runs."""
    from src.storage.database import Database
    from src.storage.repository import ItemRepository

    async def run():
        async with Database() as db:
            return await ItemRepository(db).recent_sync_logs(limit)

    entries = asyncio.run(run())
    if not entries:
        click.echo("No sync runs recorded")
        return

    click.echo(f"\nRecent sync runs ({len(entries)})")
    click.echo("=" * 70)
    for entry in entries:
        finished = entry.finished_at.isoformat() if entry.finished_at else "running"
        status = click.style("error", fg="red") if entry.error else click.style("ok", fg="green")
        click.echo(
            f"  #{entry.id:<5} {entry.mode:<12} {entry.source:<36} "
            f"{entry.items_synced:>5} items  {status}"
        )
        click.echo(f"         started {entry.started_at.isoformat()}  finished {finished}")
        if entry.error:
            click.echo(f"         {entry.error}")


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog

    from src.moderation.config import get_moderation_config
    from src.services.pipeline import build_corpus
    from src.storage.database import Database
    from src.tagging.config import get_tagging_config

    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        try:
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        corpus = build_corpus(get_moderation_config())
        await corpus.entries()
        results["corpus"] = corpus.is_loaded

        settings = get_settings()
        results["github_configured"] = settings.github_configured
        results["moderation_configured"] = get_moderation_config().api_key is not None
        results["tagging_configured"] = get_tagging_config().api_key is not None
        return results

    results = asyncio.run(check())

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)

    all_healthy = True
    for name, status in results.items():
        icon = "✓" if status else "✗"
        color = "green" if status else "red"
        click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
        if name in ("postgres", "corpus") and not status:
            all_healthy = False

    click.echo("-" * 40)

    if all_healthy:
        click.echo(click.style("All core services healthy!", fg="green"))
        sys.exit(0)
    else:
        click.echo(click.style("Some services unhealthy!", fg="red"))
        sys.exit(1)


@main.command("metrics-server", hidden=True)
@click.option("--port", default=None, type=int, help="Metrics server port")
def metrics_server(port: int | None) -> None:
    """Expose Prometheus metrics until interrupted."""

    async def run():
        get_metrics().start_server(port)
        await asyncio.Event().wait()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        click.echo("Metrics server stopped")


if __name__ == "__main__":
    main()
