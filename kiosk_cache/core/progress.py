"""
Progress display for media synchronization, using the Rich library.

The CLI's `sync --until-done` loop calls DownloadBatch repeatedly; this bar
advances once per batch by the number of items the batch processed.

Usage:
    from kiosk_cache.core.progress import SyncProgressBar

    with SyncProgressBar(total=pending) as progress:
        while ...:
            outcome = await app.download_pending_batch()
            progress.update(outcome)
"""

from typing import Optional

from rich import get_console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.theme import Theme

from kiosk_cache.library.models import DownloadOutcome


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
    "progress.percentage": "white",
})


class SyncProgressBar:
    """
    Progress bar for batched media downloads.

    Displays:
    - Description (e.g., "Syncing")
    - Status: ✓ downloaded, ✗ failed
    - Bar and completed/total count

    Example:
        Syncing   ✓ 12  ✗ 1   ━━━━━━━━━━━━━━━━━━━━  13/40

    Failed items stay pending, so the bar counts downloads only and the
    total is widened to downloaded + remaining after each batch.
    """

    def __init__(self, total: int, description: str = "Syncing") -> None:
        self.total = total
        self.description = description
        self.downloaded = 0
        self.failed = 0

        self.console = get_console()

        self.progress = Progress(
            TextColumn("[white]{task.description:<10}"),
            TextColumn("{task.fields[status]}", style="white"),
            BarColumn(bar_width=40, finished_style="green"),
            MofNCompleteColumn(),
            console=self.console,
            transient=False,
            refresh_per_second=10,
        )

        self.task_id: Optional[TaskID] = None
        self._started = False

    def __enter__(self) -> "SyncProgressBar":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def start(self) -> None:
        if not self._started:
            self.console.push_theme(PROGRESS_THEME)
            self.progress.start()
            self.task_id = self.progress.add_task(
                description=self.description,
                total=self.total,
                status=self._get_status_text(),
            )
            self._started = True

    def stop(self) -> None:
        if self._started:
            self.progress.stop()
            self.console.pop_theme()
            self._started = False

    def log(self, message: str) -> None:
        """Print a message above the progress bar."""
        self.progress.console.print(message, highlight=False)

    def _get_status_text(self) -> str:
        return f"[green]✓ {self.downloaded}[/green]  [red]✗ {self.failed}[/red]"

    def update(self, outcome: DownloadOutcome) -> None:
        """Advance by one batch."""
        self.downloaded += outcome.downloaded
        self.failed += len(outcome.errors)
        self.total = max(self.total, self.downloaded + outcome.remaining)

        if self.task_id is not None:
            self.progress.update(
                self.task_id,
                total=self.total,
                completed=self.downloaded,
                status=self._get_status_text(),
            )
