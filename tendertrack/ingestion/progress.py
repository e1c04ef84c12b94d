"""
Progress reporting for long uploads.

The orchestrator emits ProgressUpdate snapshots through SafeProgress, which
guarantees a failing callback can never abort ingestion. RichProgressReporter
is the callback the CLI plugs in.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Callable, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    processed: int
    duplicates: int
    total: int
    percentage: int
    gem_added: int = 0
    non_gem_added: int = 0
    errors: int = 0
    completed: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


ProgressCallback = Callable[[ProgressUpdate], None]


def percent(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return min(100, int(done * 100 / total))


class SafeProgress:
    """Calls a progress callback, logging and swallowing its failures."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.failures = 0

    def __call__(self, update: ProgressUpdate) -> None:
        if self.callback is None:
            return
        try:
            self.callback(update)
        except Exception as e:
            self.failures += 1
            logger.warning("Progress callback failed: %s", e)
            logger.debug("Progress callback traceback", exc_info=True)


class RichProgressReporter:
    """Progress bar for the CLI, used as a context manager."""

    def __init__(self, description: str, console: Optional[Console] = None):
        self.description = description
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[dim]{task.fields[stats]}"),
            TimeElapsedColumn(),
            console=console,
        )
        self.task_id = None

    def __enter__(self):
        self.progress.start()
        self.task_id = self.progress.add_task(self.description, total=None, stats="")
        return self

    def __exit__(self, *exc):
        self.progress.stop()
        return False

    def __call__(self, update: ProgressUpdate) -> None:
        done = update.processed + update.duplicates + update.errors
        stats = f"{update.processed} new, {update.duplicates} dup, {update.errors} err"
        self.progress.update(
            self.task_id,
            total=update.total or None,
            completed=done,
            stats=stats,
        )
