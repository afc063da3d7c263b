"""Command line entry points for the enrichment batches.

Usage:
------
placebot fetch-photos --limit 50 --min-score 5
placebot verify-places --limit 20
placebot clean-encyclopedia --dry-run
"""

import asyncio
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional

import typer

from placebot.catalog.store import SQLiteCatalog
from placebot.core.cache import SourceCache
from placebot.core.exceptions import ConfigurationError
from placebot.enrichment.batch import (
    BatchStats,
    enrich_encyclopedia_batch,
    fetch_photos_batch,
    fetch_ratings_batch,
    recalculate_scores_batch,
    verify_places_batch,
)
from placebot.enrichment.cleanup import EncyclopediaCleanup
from placebot.enrichment.http_client import build_http_client
from placebot.enrichment.scoring import ScoreService, ScoringEngine
from placebot.runtime import Runtime
from placebot.settings import Settings, load_settings
from placebot.utils.logger import LoggerManager
from placebot.utils.task_paths import TaskPaths

app = typer.Typer(help="Enrich the places catalog from external sources.")

paths = TaskPaths()

cli_logger = LoggerManager.get_logger(
    name="cli",
    task_paths=paths,
    run_id=None,
    use_json=True,
)


def _settings(config: Optional[Path]) -> Settings:
    try:
        return load_settings(config)
    except FileNotFoundError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)


def _print_progress(stats: BatchStats) -> None:
    typer.echo(
        f"  [{stats.processed}/{stats.total}] "
        f"ok={stats.succeeded} failed={stats.failed} skipped={stats.skipped}"
    )


def _run(
    config: Optional[Path],
    batch: Callable[[Runtime], Awaitable[BatchStats]],
) -> BatchStats:
    """Run one batch with a fresh catalog connection and HTTP client."""
    settings = _settings(config)
    run_id = uuid.uuid4().hex[:8]
    cli_logger.info(
        "cli.run.start",
        extra={"extra_data": {"run_id": run_id, "database": str(settings.database_path)}},
    )

    async def main() -> BatchStats:
        catalog = SQLiteCatalog(settings.database_path)
        try:
            async with build_http_client(settings.http) as http:
                return await batch(Runtime(settings, catalog, http))
        finally:
            catalog.close()

    try:
        stats = asyncio.run(main())
    except ConfigurationError as e:
        cli_logger.error("cli.run.config_error", extra={"extra_data": {"error": str(e)}})
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=2)

    typer.echo(f"✅ {stats.summary()}")
    cli_logger.info("cli.run.done", extra={"extra_data": {"run_id": run_id, "summary": stats.summary()}})
    return stats


ConfigOption = typer.Option(None, "--config", "-c", help="YAML config file.")
LimitOption = typer.Option(None, "--limit", "-n", help="Process at most this many items.")


@app.command("fetch-photos")
def fetch_photos(
    limit: Optional[int] = LimitOption,
    min_score: Optional[float] = typer.Option(
        None, "--min-score", help="Only places with at least this score."
    ),
    config: Optional[Path] = ConfigOption,
):
    """Fetch photos (Wikimedia Commons, then Google Places) for unprocessed places."""
    def batch(runtime: Runtime):
        score = runtime.settings.media.min_place_score if min_score is None else min_score
        return fetch_photos_batch(
            runtime.media(), runtime.catalog, min_score=score, limit=limit,
            on_progress=_print_progress,
        )

    _run(config, batch)


@app.command("fetch-ratings")
def fetch_ratings(limit: Optional[int] = LimitOption, config: Optional[Path] = ConfigOption):
    """Fetch Google Places ratings for places never fetched or fetched long ago."""
    _run(config, lambda runtime: fetch_ratings_batch(
        runtime.ratings(), runtime.catalog, limit=limit, on_progress=_print_progress
    ))


@app.command("verify-places")
def verify_places(limit: Optional[int] = LimitOption, config: Optional[Path] = ConfigOption):
    """Verify generated places against map features, oldest first."""
    _run(config, lambda runtime: verify_places_batch(
        runtime.resolver(), runtime.catalog, limit=limit, on_progress=_print_progress
    ))


@app.command("enrich-encyclopedia")
def enrich_encyclopedia(
    limit: Optional[int] = LimitOption,
    force_refresh: bool = typer.Option(
        False, "--force-refresh", help="Ignore cached encyclopedia pages."
    ),
    config: Optional[Path] = ConfigOption,
):
    """Find and store the encyclopedia article of places never analyzed."""
    _run(config, lambda runtime: enrich_encyclopedia_batch(
        runtime.encyclopedia(), runtime.catalog, runtime.scores,
        limit=limit, force_refresh=force_refresh, on_progress=_print_progress,
    ))


@app.command("recalculate-scores")
def recalculate_scores(limit: Optional[int] = LimitOption, config: Optional[Path] = ConfigOption):
    """Recompute every place score from its stored signals."""
    _run(config, lambda runtime: recalculate_scores_batch(
        runtime.scores, runtime.catalog, limit=limit
    ))


@app.command("clean-encyclopedia")
def clean_encyclopedia(
    dry_run: bool = typer.Option(False, "--dry-run", help="Only list mismatches."),
    config: Optional[Path] = ConfigOption,
):
    """Remove encyclopedia pages whose title does not match the place name."""
    settings = _settings(config)
    catalog = SQLiteCatalog(settings.database_path)
    try:
        cleanup = EncyclopediaCleanup(
            catalog, ScoreService(catalog, ScoringEngine(settings.scoring)), settings.cleanup
        )
        report = cleanup.run(dry_run=dry_run)
    finally:
        catalog.close()

    typer.echo(
        f"Checked {report.checked} places: {len(report.invalid)} mismatched, "
        f"{len(report.manual_review)} for manual review, {report.removed} removed"
    )
    for candidate in report.manual_review:
        typer.echo(f"  review: {candidate.name} -> {candidate.reference} ({candidate.similarity:.2f})")


@app.command("clear-cache")
def clear_cache(
    namespace: str = typer.Argument("wikipedia", help="Cache namespace to clear."),
    config: Optional[Path] = ConfigOption,
):
    """Delete every cached entry of one namespace."""
    settings = _settings(config)
    removed = SourceCache(settings.cache.directory, namespace).clear()
    typer.echo(f"🗑️  Removed {removed} cached entries from '{namespace}'")


if __name__ == "__main__":
    app()
