"""
Entry point for `catalog-sync` and `python -m catalog_sync`.

Errors that escape a command are rendered as a panel. When the catalog
cannot be served at all (offline with an empty cache), the exit status
is 2 so wrapper scripts can tell it apart from ordinary failures.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from catalog_sync.cli.app import app
from catalog_sync.cli.formatters import format_error_with_suggestions
from catalog_sync.exceptions import CatalogSyncError, NoCatalogAvailable

EXIT_NO_CATALOG = 2


def _force_utf8_streams() -> None:
    # Rich panels use box-drawing characters the legacy Windows codepage lacks.
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            continue


def main() -> None:
    if os.name == "nt":
        _force_utf8_streams()

    console = Console(stderr=True)

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        console.print("\n[yellow]Sync interrupted. Finished downloads are kept.[/yellow]")
        sys.exit(130)
    except NoCatalogAvailable as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(EXIT_NO_CATALOG)
    except CatalogSyncError as e:
        console.print(f"\n{format_error_with_suggestions(e)}")
        sys.exit(1)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, {'type': 'Unexpected'})}")
        logging.getLogger("catalog_sync").debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
