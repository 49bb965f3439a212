"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from catalog_sync import __version__
from catalog_sync.api.media_client import MediaClient
from catalog_sync.api.sheets_client import SheetsClient
from catalog_sync.core.catalog_loader import CatalogLoad, CatalogLoader
from catalog_sync.core.sync_manager import MediaSyncManager
from catalog_sync.core.version_checker import VersionChecker
from catalog_sync.exceptions import ConfigurationError, NoCatalogAvailable, StoreUnavailable
from catalog_sync.models.catalog import CatalogSnapshot
from catalog_sync.models.config import SyncConfig
from catalog_sync.models.stats import SyncResult
from catalog_sync.storage.catalog_cache import CatalogCache
from catalog_sync.storage.config_manager import ConfigManager
from catalog_sync.storage.media_cache import MediaFreshnessTracker
from catalog_sync.storage.store import PersistentStore

from .formatters import (
    print_config,
    print_status_table,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("catalog_sync")

app = typer.Typer(
    name="catalog-sync",
    help=(
        "Keeps an offline mirror of a product catalog and its media in sync with"
        " a published sheet. Use 'catalog-sync <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "catalog-sync"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load(cli_options: dict | None = None) -> tuple[ConfigManager, SyncConfig]:
    config_manager = ConfigManager(CONFIG_FILE)
    return config_manager, config_manager.load_config(cli_options)


def _open_store(config_manager: ConfigManager, config: SyncConfig) -> PersistentStore:
    return PersistentStore.open(config_manager.store_path, pool_size=config.concurrency)


async def _sync_media(
    config: SyncConfig, store: PersistentStore, snapshot: CatalogSnapshot
) -> SyncResult:
    async with MediaClient(
        concurrency=config.concurrency,
        timeout=config.request_timeout,
        max_attempts=config.max_attempts,
    ) as media_client:
        manager = MediaSyncManager(
            MediaFreshnessTracker(store),
            media_client,
            concurrency=config.concurrency,
            cdn_base=config.cdn_base_url,
            progress_buffer=config.progress_buffer,
        )
        async with ProgressManager(console) as progress:
            return await manager.sync_media(
                snapshot.products, snapshot.features, on_progress=progress.on_progress
            )


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Catalog Sync CLI"""
    if version:
        console.print(f"[bold]catalog-sync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("catalog_sync").setLevel("DEBUG" if verbose >= 1 else "INFO")

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]catalog-sync init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        print_config(CONFIG_FILE, ConfigManager(CONFIG_FILE).get_raw_config())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    sheet_id: str = typer.Argument(..., help="Sheet ID or the full spreadsheet URL."),
    items_gid: str = typer.Option(
        ..., "--items-gid", help="GID (or tab URL) of the items tab."
    ),
    db_gid: str = typer.Option(
        ..., "--db-gid", help="GID (or tab URL) of the tab holding the version in B1."
    ),
    features_gid: str = typer.Option(
        "", "--features-gid", help="GID (or tab URL) of the optional features tab."
    ),
    cdn_base_url: str = typer.Option(
        "", "--cdn-base-url", help="Base URL media files are served from."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Initialize configuration with the catalog sheet location."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        config = SyncConfig(
            sheet_id=sheet_id,
            items_gid=items_gid,
            db_gid=db_gid,
            features_gid=features_gid,
            cdn_base_url=cdn_base_url,
            config_path=str(CONFIG_DIR),
            data_dir=str(CONFIG_DIR),
        )
    except ValidationError as e:
        console.print(f"[red]✗ Invalid settings:[/red]\n{e}")
        raise typer.Exit(code=1) from e

    ConfigManager(CONFIG_FILE).save_new_config(
        {key: getattr(config, key) for key in SyncConfig.get_ini_keys()}
    )
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to sync! Try: [cyan]catalog-sync refresh[/cyan]")


@app.command()
def refresh(
    force: bool = typer.Option(
        False, "--force", help="Re-fetch the catalog even if the version is unchanged."
    ),
    no_media: bool = typer.Option(
        False, "--no-media", help="Only refresh the catalog, do not sync media."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous media syncs (default 5)."
    ),
):
    """Load the catalog (checking the sheet version) and sync its media."""
    cli_options = {"concurrency": workers} if workers is not None else None

    async def _refresh_async() -> tuple[CatalogLoad, SyncResult | None]:
        config_manager, config = _load(cli_options)
        if not config.is_catalog_configured:
            raise ConfigurationError(
                "sheet_id, items_gid and db_gid must be set. "
                "Run 'catalog-sync init' first."
            )
        source = config.sheet_source()

        try:
            store = _open_store(config_manager, config)
        except StoreUnavailable as e:
            log.warning(
                f"[yellow]Catalog store unavailable, loading from the sheet without"
                f" caching: {e}[/yellow]"
            )
            async with SheetsClient(timeout=config.request_timeout) as sheets:
                load = await CatalogLoader(None, None, sheets).load(source)
            if not no_media:
                log.warning("[yellow]Media sync skipped: nowhere to store media.[/yellow]")
            return load, None

        with store:
            cache = CatalogCache(store)
            async with SheetsClient(timeout=config.request_timeout) as sheets:
                loader = CatalogLoader(cache, VersionChecker(cache, sheets), sheets)
                if force:
                    load = await loader.refresh(source)
                else:
                    load = await loader.load(source)

            if no_media:
                return load, None
            return load, await _sync_media(config, store, load.snapshot)

    load, result = asyncio.run(_refresh_async())
    if result is None:
        origin = "cache" if load.from_cache else "sheet"
        console.print(
            f"[green]✓ Catalog v{load.snapshot.version} loaded from {origin} "
            f"({len(load.snapshot.products)} products).[/green]"
        )
        return
    print_summary_panel(result, load)


@app.command()
def sync(
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous media syncs (default 5)."
    ),
):
    """Sync media for the cached catalog without contacting the sheet."""
    cli_options = {"concurrency": workers} if workers is not None else None

    async def _sync_async() -> SyncResult:
        config_manager, config = _load(cli_options)
        with _open_store(config_manager, config) as store:
            snapshot = await CatalogCache(store).get_cached_catalog()
            if snapshot is None:
                raise NoCatalogAvailable(
                    "No cached catalog. Run 'catalog-sync refresh' first."
                )
            return await _sync_media(config, store, snapshot)

    print_summary_panel(asyncio.run(_sync_async()))


@app.command()
def status():
    """Show the cached catalog version and media cache size."""

    async def _status_async():
        config_manager, config = _load()
        with _open_store(config_manager, config) as store:
            snapshot = await CatalogCache(store).get_cached_catalog()
            store_stats = await store.stats()
        print_status_table(snapshot, store_stats, config_manager.store_path)

    asyncio.run(_status_async())


@app.command(name="clear-cache")
def clear_cache(
    media: bool = typer.Option(
        False, "--media", help="Also evict every cached media file."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Drop the cached catalog so the next refresh re-fetches it."""
    what = "catalog and media caches" if media else "catalog cache"
    if not force and not typer.confirm(f"Are you sure you want to clear the {what}?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _clear_async():
        config_manager, config = _load()
        with _open_store(config_manager, config) as store:
            console.print(f"[cyan]Clearing {what}...[/cyan]")
            ok = await CatalogCache(store).clear()
            if media:
                ok = await MediaFreshnessTracker(store).clear() and ok
        if ok:
            console.print(f"[green]✓ Cleared the {what}.[/green]")
        else:
            console.print(f"[red]✗ Failed to clear the {what}.[/red]")
            raise typer.Exit(code=1)

    asyncio.run(_clear_async())


@app.command()
def vacuum():
    """Optimize the local store file."""

    async def _vacuum():
        config_manager, config = _load()
        console.print("[cyan]Optimizing store database...[/cyan]")
        with _open_store(config_manager, config) as store:
            ok = await store.vacuum()
        if ok:
            console.print("[green]✓ Database optimized.[/green]")
        else:
            console.print("[red]✗ Optimization failed.[/red]")

    asyncio.run(_vacuum())


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        _, config = _load()
        print_validation_table(config)
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
