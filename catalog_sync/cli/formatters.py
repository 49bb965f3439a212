"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from catalog_sync.core.catalog_loader import CatalogLoad
from catalog_sync.models.catalog import CatalogSnapshot
from catalog_sync.models.config import SyncConfig
from catalog_sync.models.stats import SyncResult
from catalog_sync.utils.formatting import format_age, format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `catalog-sync init` to create a configuration file.",
            "• Check the values with `catalog-sync validate`.",
        ],
        "NoCatalogAvailable": [
            "• Connect to the internet and run `catalog-sync refresh` once.",
            "• Verify the sheet is published and the GIDs are correct.",
        ],
        "RemoteFetchFailed": [
            "• Check your internet connection.",
            "• Make sure the sheet is shared as 'Anyone with the link'.",
            "• Verify `sheet_id`, `items_gid` and `db_gid` in the configuration.",
        ],
        "StoreUnavailable": [
            "• Check that the data directory exists and is writable.",
            "• Another process may hold a lock on the store file.",
        ],
        "CacheWriteFailed": [
            "• The disk may be full or read-only.",
            "• Run `catalog-sync vacuum` to reclaim space.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the raw configuration file values."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: SyncConfig):
    """Displays a summary of the validated settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Sheet ID:", config.sheet_id or "[red]not set[/red]")
    table.add_row("Items GID:", config.items_gid or "[red]not set[/red]")
    table.add_row("Version GID:", config.db_gid or "[red]not set[/red]")
    table.add_row("Features GID:", config.features_gid or "[dim]none[/dim]")
    table.add_row("CDN Base URL:", config.cdn_base_url or "[dim]local /images/[/dim]")
    table.add_row("Workers:", str(config.concurrency))
    table.add_row("Max Attempts:", str(config.max_attempts))
    table.add_row("Store:", f"[dim]{config.data_dir}[/dim]")

    if config.is_catalog_configured:
        title, style = "[bold green]✓ Validated Settings[/bold green]", "green"
    else:
        title, style = "[bold yellow]⚠ Catalog source incomplete[/bold yellow]", "yellow"
    console.print(Panel(table, title=title, border_style=style))


def print_status_table(
    snapshot: CatalogSnapshot | None,
    store_stats: dict[str, Any] | None,
    store_path: Path,
):
    """Displays the cached catalog and media cache state."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column()

    if snapshot:
        last_updated = snapshot.meta.last_updated
        table.add_row("Catalog Version:", f"[green]{snapshot.version}[/green]")
        table.add_row(
            "Last Updated:",
            f"{last_updated:%Y-%m-%d %H:%M:%S %Z} [dim]({format_age(last_updated)})[/dim]",
        )
        table.add_row("Products:", str(len(snapshot.products)))
        table.add_row("Features:", str(len(snapshot.features)))
    else:
        table.add_row("Catalog:", "[yellow]not cached[/yellow]")

    if store_stats:
        table.add_row("Media Entries:", str(store_stats["media_entries"]))
        table.add_row("Media Size:", format_size(store_stats["media_bytes"]))
    else:
        table.add_row("Media Cache:", "[red]unavailable[/red]")
    table.add_row("Store:", f"[dim]{store_path}[/dim]")

    console.print(Panel(table, title="[bold]Catalog Status[/bold]", border_style="cyan"))


def print_summary_panel(result: SyncResult, load: CatalogLoad | None = None):
    """Displays the final summary of a refresh or sync run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=16)
    stats_table.add_column(style="white", justify="left")

    if load is not None:
        origin = "cache" if load.from_cache else "sheet"
        stats_table.add_row(
            "Catalog:", f"v{load.snapshot.version} [dim](from {origin})[/dim]"
        )
        stats_table.add_row("Products:", str(len(load.snapshot.products)))
        stats_table.add_row("", "")

    stats_table.add_row("Media URLs:", str(result.total))
    stats_table.add_row("✓ Downloaded:", f"[bold green]{result.downloaded}[/bold green]")
    stats_table.add_row("○ Up to date:", f"[cyan]{result.up_to_date}[/cyan]")
    if result.skipped > 0:
        stats_table.add_row("⚠ Skipped:", f"[yellow]{result.skipped}[/yellow]")
    if result.failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{result.failed}[/bold red]")

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(result.bytes_downloaded)}[/cyan]"
    )
    stats_table.add_row(
        "Time Elapsed:", f"[blue]{format_duration(result.duration_s)}[/blue]"
    )

    if result.skipped or result.failed:
        title, border = "⚠ [bold]Sync incomplete[/bold]", "yellow"
    else:
        title, border = "✓ [bold]Sync complete[/bold]", "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    if load is not None and load.error:
        console.print(f"[yellow]Sheet unreachable, served from cache: {load.error}[/yellow]")
