"""Console reporter using Rich library for formatted CLI output.

Prints one line when a transfer starts, a line each time it crosses another
step of percent completed, and a final completed/failed line. Parts of a
multipart upload are prefixed with their part number.
"""

import logging
import threading
from typing import Optional

from rich.console import Console
from rich.markup import escape

from oss_uploader.models import ProgressEvent, ProgressPhase, UploadResult, UploadStrategy
from oss_uploader.reporters.base import ProgressReporter

logger = logging.getLogger(__name__)


class ConsoleReporter(ProgressReporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, only print the final summary line
        step: Minimum percent advance between two data lines
        console: Console to write to (defaults to a new one on stdout)
    """

    def __init__(
        self,
        quiet: bool = False,
        step: int = 10,
        console: Optional[Console] = None,
    ):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet
        self.step = step
        self._last_percent: dict[Optional[int], int] = {}
        self._lock = threading.Lock()

    def on_event(self, event: ProgressEvent) -> None:
        """Render a progress event. Rendering errors are logged, not raised."""
        if self.quiet:
            return
        try:
            line = self._format(event)
            if line is not None:
                self.console.print(line, highlight=False)
        except Exception as e:
            logger.debug("Progress rendering failed: %s", e)

    def on_upload_complete(self, result: UploadResult) -> None:
        """Print the upload summary."""
        etag = f" (ETag {escape(result.etag)})" if result.etag else ""
        self.console.print(
            f"[bold green]upload success![/bold green] {escape(result.key)}{etag}",
            highlight=False,
        )
        if result.strategy == UploadStrategy.MULTIPART and not self.quiet:
            self.console.print(
                f"   [dim]{result.part_count} parts, "
                f"{result.bytes_transferred} bytes in {result.duration_seconds:.1f}s[/dim]",
                highlight=False,
            )

    def _format(self, event: ProgressEvent) -> Optional[str]:
        prefix = ""
        if event.part_number is not None:
            prefix = f"part {event.part_number}: "
        counts = f"consumed bytes: {event.consumed_bytes}, total bytes: {event.total_bytes}"

        if event.phase == ProgressPhase.STARTED:
            with self._lock:
                self._last_percent[event.part_number] = 0
            return f"{prefix}started, {counts}."

        if event.phase == ProgressPhase.DATA_TRANSFERRED:
            percent = event.percent
            with self._lock:
                last = self._last_percent.get(event.part_number, 0)
                if percent < 100 and percent - last < self.step:
                    return None
                self._last_percent[event.part_number] = percent
            return f"[cyan]{prefix}uploading {counts}, {percent}%.[/cyan]"

        with self._lock:
            self._last_percent.pop(event.part_number, None)

        if event.phase == ProgressPhase.COMPLETED:
            return f"[green]{prefix}completed, {counts}.[/green]"
        return f"[red]{prefix}failed, {counts}.[/red]"
