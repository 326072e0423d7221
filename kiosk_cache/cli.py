"""
Command-line interface for kiosk-cache.

This module implements the CLI using Click, exposing the application
commands for operators and for scripting the kiosk (e.g. a cron job that
runs `kiosk-cache sync --until-done`). rich-click is used for the help
output and colors.

Commands:
    kiosk-cache status                  Activation status (online-first)
    kiosk-cache activate <key>          Validate and adopt an activation key
    kiosk-cache deactivate              Forget the local activation
    kiosk-cache offline-status          Local holdings vs remote catalog
    kiosk-cache sync                    Download one batch of pending tracks
    kiosk-cache sync --until-done       Keep downloading batches until done
    kiosk-cache reindex                 Index media files missing from the store
    kiosk-cache search <query>          Search indexed tracks
    kiosk-cache lookup <code>           Show one indexed track
    kiosk-cache random                  Print a random indexed track code
    kiosk-cache play <code>             Record a playback, print the file path
    kiosk-cache history                 Recent playback events

Configuration:
    Reads config.yaml from the current directory, or the file given with
    --config. Remote credentials may also come from the environment or a
    .env file next to the config file.

Exit Codes:
    0 success, 1 configuration error, 2 local store error,
    3 remote error, 4 other kiosk-cache error, 130 interrupted.
"""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional

import rich_click as click
from rich.console import Console
from rich.table import Table

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "kiosk-cache": [
        {
            "name": "Activation",
            "commands": ["status", "activate", "deactivate"],
        },
        {
            "name": "Media Sync",
            "commands": ["offline-status", "sync", "reindex"],
        },
        {
            "name": "Library",
            "commands": ["search", "lookup", "random", "play", "history"],
        },
    ],
}

from kiosk_cache import __version__
from kiosk_cache.app import KioskCache
from kiosk_cache.core.config import load_config
from kiosk_cache.core.exceptions import (
    ConfigError,
    KioskCacheError,
    RemoteError,
    StoreUnavailableError,
)
from kiosk_cache.core.logger import get_logger, setup_logging, shutdown_logging
from kiosk_cache.core.progress import SyncProgressBar
from kiosk_cache.library.models import DownloadOutcome, LocalTrackRecord

logger = get_logger(__name__)

console = Console()


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Show debug messages on the console"
)
@click.version_option(__version__, prog_name="kiosk-cache")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool) -> None:
    """
    kiosk-cache: offline license and media cache for a karaoke kiosk.

    Keeps the activation state and the video library usable without
    network, treating the remote service as the source of truth whenever
    it is reachable.

    \b
    TYPICAL USE:
        kiosk-cache activate ABCD-1234       # Adopt a key
        kiosk-cache sync --until-done        # Download the whole catalog
        kiosk-cache status                   # Check the license
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _run_command(ctx: click.Context, handler: Callable[[KioskCache], Awaitable[None]]) -> None:
    """
    Load configuration, set up logging, and run handler against the app.

    Maps kiosk-cache errors to exit codes (see module docstring).
    """
    try:
        config = load_config(ctx.obj["config_path"])

        setup_logging(
            config.storage.logs_dir,
            console_level=logging.DEBUG if ctx.obj["verbose"] else logging.INFO,
        )
        logger.debug(f"kiosk-cache {__version__} starting ({ctx.info_name})")

        asyncio.run(_with_app(KioskCache.from_config(config), handler))

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except StoreUnavailableError as e:
        click.echo(f"Local store error: {e.message}", err=True)
        logger.error(f"Local store error: {e.message}", exc_info=True)
        sys.exit(2)

    except RemoteError as e:
        click.echo(f"Remote error: {e.message}", err=True)
        logger.error(f"Remote error: {e.message}")
        sys.exit(3)

    except KioskCacheError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}")
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    finally:
        shutdown_logging()


async def _with_app(app: KioskCache, handler: Callable[[KioskCache], Awaitable[None]]) -> None:
    async with app:
        await handler(app)


def _print_tracks(tracks: list[LocalTrackRecord]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Artist")
    table.add_column("Title")
    table.add_column("Size (MB)", justify="right")

    for track in tracks:
        size = f"{track.size / (1024 * 1024):.1f}" if track.size else "-"
        table.add_row(track.code, track.artist, track.title, size)

    console.print(table)


def _print_outcome_errors(errors: list[str]) -> None:
    for error in errors:
        console.print(f"  [red]✗[/red] {error}", highlight=False)


# =============================================================================
# Activation
# =============================================================================

@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the activation status (checks online, falls back to offline)."""

    async def handler(app: KioskCache) -> None:
        result = await app.query_activation_status()

        if result.active:
            state = "[green]active[/green]"
        elif result.expired:
            state = "[red]expired[/red]"
        else:
            state = "[yellow]not activated[/yellow]"

        console.print(f"Status:    {state} ({result.mode.value})")
        if result.key:
            console.print(f"Key:       {result.key} ({result.kind.value})")
        if result.remaining_days is not None:
            console.print(f"Days left: {result.remaining_days}")
        if result.remaining_hours is not None:
            console.print(f"Hours left: {result.remaining_hours:.1f}")
        if result.expires_at is not None:
            console.print(f"Expires:   {result.expires_at:%Y-%m-%d %H:%M} UTC")

    _run_command(ctx, handler)


@cli.command()
@click.argument("key")
@click.pass_context
def activate(ctx: click.Context, key: str) -> None:
    """Validate KEY with the remote service and adopt it."""

    async def handler(app: KioskCache) -> None:
        result = await app.submit_activation_key(key)

        if not result.valid:
            console.print(f"[red]Activation failed:[/red] {result.error}")
            ctx.exit(4)

        console.print(f"[green]Activated[/green] ({result.kind.value})")
        if result.remaining_days is not None:
            console.print(f"Days left: {result.remaining_days}")
        if result.remaining_hours is not None:
            console.print(f"Hours left: {result.remaining_hours:.1f}")

    _run_command(ctx, handler)


@cli.command()
@click.pass_context
def deactivate(ctx: click.Context) -> None:
    """Forget the local activation."""

    async def handler(app: KioskCache) -> None:
        app.clear_activation()
        console.print("Local activation removed")

    _run_command(ctx, handler)


# =============================================================================
# Media Sync
# =============================================================================

@cli.command("offline-status")
@click.pass_context
def offline_status(ctx: click.Context) -> None:
    """Show how much of the catalog is available offline."""

    async def handler(app: KioskCache) -> None:
        result = await app.get_offline_status()

        console.print(f"Total tracks:   {result.total_tracks}")
        console.print(f"Offline:        {result.offline_tracks}")
        console.print(f"Online only:    {result.online_only_tracks}")
        console.print(f"Storage used:   {result.bytes_used_mb:.2f} MB")
        if not result.catalog_reachable:
            console.print("[yellow]Catalog unreachable, totals are local only[/yellow]")

    _run_command(ctx, handler)


@cli.command()
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Tracks per batch (default: sync.batch_size from config)"
)
@click.option(
    "--until-done",
    is_flag=True,
    help="Keep downloading batches until nothing is pending"
)
@click.option(
    "--pause",
    type=click.FloatRange(min=0),
    default=5.0,
    show_default=True,
    help="Seconds to wait between batches with --until-done"
)
@click.pass_context
def sync(ctx: click.Context, batch_size: Optional[int], until_done: bool, pause: float) -> None:
    """Download pending tracks from the catalog."""

    async def handler(app: KioskCache) -> None:
        outcome = await app.download_pending_batch(batch_size)

        if not until_done:
            _print_batch(outcome)
            return

        with SyncProgressBar(total=outcome.downloaded + outcome.remaining) as progress:
            progress.update(outcome)
            while outcome.remaining > 0:
                if outcome.downloaded == 0:
                    progress.log("[yellow]No progress in last batch, stopping[/yellow]")
                    break
                await asyncio.sleep(pause)
                outcome = await app.download_pending_batch(batch_size)
                progress.update(outcome)
                for error in outcome.errors:
                    progress.log(f"  [red]✗[/red] {error}")

        console.print(
            f"Downloaded {progress.downloaded}, failed {progress.failed}, "
            f"remaining {outcome.remaining}"
        )

    _run_command(ctx, handler)


def _print_batch(outcome: DownloadOutcome) -> None:
    console.print(f"Downloaded: {outcome.downloaded}")
    console.print(f"Remaining:  {outcome.remaining}")
    if outcome.errors:
        console.print(f"[red]Failed:     {len(outcome.errors)}[/red]")
        _print_outcome_errors(outcome.errors)


@cli.command()
@click.pass_context
def reindex(ctx: click.Context) -> None:
    """Index media files that are on disk but missing from the store."""

    async def handler(app: KioskCache) -> None:
        outcome = await app.reindex_local_tracks()
        console.print(f"Media files: {outcome.total_files}")
        console.print(f"Reindexed:   {outcome.reindexed}")
        _print_outcome_errors(outcome.errors)

    _run_command(ctx, handler)


# =============================================================================
# Library
# =============================================================================

@cli.command()
@click.argument("query")
@click.pass_context
def search(ctx: click.Context, query: str) -> None:
    """Search indexed tracks by code, artist or title."""

    async def handler(app: KioskCache) -> None:
        tracks = app.search_tracks(query)
        if not tracks:
            console.print("No tracks found")
            return
        _print_tracks(tracks)

    _run_command(ctx, handler)


@cli.command()
@click.argument("code")
@click.pass_context
def lookup(ctx: click.Context, code: str) -> None:
    """Show the indexed track for CODE."""

    async def handler(app: KioskCache) -> None:
        track = app.lookup_track_by_code(code)
        if track is None:
            console.print(f"No track with code {code}")
            ctx.exit(4)
        _print_tracks([track])

    _run_command(ctx, handler)


@cli.command("random")
@click.pass_context
def random_track(ctx: click.Context) -> None:
    """Print the code of a random indexed track."""

    async def handler(app: KioskCache) -> None:
        code = app.random_track_code()
        if code is None:
            console.print("Library is empty")
            ctx.exit(4)
        click.echo(code)

    _run_command(ctx, handler)


@cli.command()
@click.argument("code")
@click.pass_context
def play(ctx: click.Context, code: str) -> None:
    """Record a playback of CODE and print its media file path."""

    async def handler(app: KioskCache) -> None:
        path = app.asset_path(code)
        app.record_playback(code)
        click.echo(str(path))

    _run_command(ctx, handler)


@cli.command()
@click.option("--limit", type=click.IntRange(min=1), default=20, show_default=True)
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show recent playback events."""

    async def handler(app: KioskCache) -> None:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Played at")
        table.add_column("Code", style="cyan")
        table.add_column("Synced")
        for event in app.store.get_history(limit):
            table.add_row(event.played_at, event.code, "yes" if event.synced_at else "no")
        console.print(table)

    _run_command(ctx, handler)


def main() -> None:
    """
    Entry point for the CLI.

    Called when running `kiosk-cache` from the command line.
    """
    cli(obj={})


if __name__ == "__main__":
    main()
