"""
Dataclasses for tracking media sync statistics and progress.
"""

import time
from dataclasses import dataclass, field
from enum import Enum


class JobOutcome(Enum):
    """How a single media URL job ended."""

    DOWNLOADED = "downloaded"
    UP_TO_DATE = "up_to_date"  # Local copy is current, nothing fetched
    SKIPPED = "skipped"  # Not synced this pass, retried on the next one
    FAILED = "failed"  # Unexpected error inside the job


@dataclass(frozen=True)
class SyncProgress:
    """A progress notification pushed after every finished job."""

    current: int
    total: int
    message: str = ""

    @property
    def done(self) -> bool:
        return self.current >= self.total


@dataclass
class SyncResult:
    """Tracks statistics for one media sync run."""

    total: int = 0
    downloaded: int = 0
    up_to_date: int = 0
    skipped: int = 0
    failed: int = 0
    bytes_downloaded: int = 0
    duration_s: float = 0.0
    pending_urls: list[str] = field(default_factory=list, repr=False)
    _start_time: float = field(default_factory=time.monotonic, repr=False)

    @property
    def completed(self) -> int:
        return self.downloaded + self.up_to_date + self.skipped + self.failed

    def record(self, url: str, outcome: JobOutcome, size: int = 0) -> None:
        """Counts one finished job. Skipped and failed URLs are kept for reporting."""
        if outcome is JobOutcome.DOWNLOADED:
            self.downloaded += 1
            self.bytes_downloaded += size
        elif outcome is JobOutcome.UP_TO_DATE:
            self.up_to_date += 1
        elif outcome is JobOutcome.SKIPPED:
            self.skipped += 1
            self.pending_urls.append(url)
        else:
            self.failed += 1
            self.pending_urls.append(url)

    def finish(self) -> None:
        self.duration_s = time.monotonic() - self._start_time
