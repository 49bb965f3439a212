"""
Rich progress display for media sync runs.
"""

import asyncio

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from catalog_sync.models.stats import SyncProgress


class ProgressManager:
    """
    Renders `SyncProgress` events as a single overall progress bar.

    Pass `on_progress` to `MediaSyncManager.sync_media` as the progress sink.
    """

    def __init__(self, console: Console):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            "•",
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )
        self._task_id: TaskID | None = None

    def on_progress(self, event: SyncProgress) -> None:
        if self._task_id is None:
            self._task_id = self.progress.add_task(event.message, total=event.total)
        self.progress.update(
            self._task_id,
            description=event.message,
            completed=event.current,
            total=event.total or 1,
        )
        if event.total == 0:
            self.progress.update(self._task_id, completed=1)

    async def __aenter__(self) -> "ProgressManager":
        self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        # Let the last refresh land before stopping the live display
        await asyncio.sleep(0.1)
        self.progress.stop()
        return False
