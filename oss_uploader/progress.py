"""Progress tracking for individual transfers.

A TransferTracker turns the bytes flowing through one PUT request into the
STARTED / DATA_TRANSFERRED / COMPLETED|FAILED event stream that reporters
consume. In multipart mode each part is its own tracked transfer; a
PartProgressRelay sits between the trackers and the user's reporter and
keeps a running total for the whole file.
"""

import logging
import threading
from typing import Iterable, Iterator, Optional

from oss_uploader.models import ProgressEvent, ProgressPhase
from oss_uploader.reporters.base import ProgressReporter

logger = logging.getLogger(__name__)


class TransferTracker:
    """Emits the progress events of a single tracked transfer.

    STARTED is sent once with consumed_bytes=0, DATA_TRANSFERRED after every
    chunk with a non-decreasing byte count, and exactly one of COMPLETED or
    FAILED at the end. Reporter exceptions are logged and suppressed.
    """

    def __init__(
        self,
        reporter: Optional[ProgressReporter],
        total_bytes: int,
        part_number: Optional[int] = None,
    ):
        self.reporter = reporter
        self.total_bytes = total_bytes
        self.part_number = part_number
        self.consumed_bytes = 0
        self._started = False
        self._finished = False

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._emit(ProgressPhase.STARTED)

    def wrap(self, chunks: Iterable[bytes]) -> Iterator[bytes]:
        """Yield chunks unchanged, reporting each one after it is handed on."""
        self.start()
        for chunk in chunks:
            yield chunk
            if chunk:
                self.consumed_bytes += len(chunk)
                self._emit(ProgressPhase.DATA_TRANSFERRED)

    def complete(self) -> None:
        self._finish(ProgressPhase.COMPLETED)

    def fail(self) -> None:
        self._finish(ProgressPhase.FAILED)

    def _finish(self, phase: ProgressPhase) -> None:
        if self._finished:
            return
        self.start()
        self._finished = True
        self._emit(phase)

    def _emit(self, phase: ProgressPhase) -> None:
        if self.reporter is None:
            return
        event = ProgressEvent(
            phase=phase,
            consumed_bytes=self.consumed_bytes,
            total_bytes=self.total_bytes,
            part_number=self.part_number,
        )
        try:
            self.reporter.on_event(event)
        except Exception as e:
            logger.warning("Progress reporter raised on %s event: %s", phase.value, e)


class ProgressTotals:
    """Thread-safe running byte count across all parts of one upload."""

    def __init__(self, total_bytes: int = 0):
        self.total_bytes = total_bytes
        self._consumed = 0
        self._lock = threading.Lock()

    def add(self, delta: int) -> int:
        """Add delta (which may be negative) and return the new total."""
        with self._lock:
            self._consumed += delta
            return self._consumed

    @property
    def consumed(self) -> int:
        with self._lock:
            return self._consumed


class PartProgressRelay(ProgressReporter):
    """Forwards part events downstream and folds them into ProgressTotals.

    Receives absolute byte counts per part and adds the deltas to the shared
    totals. A FAILED event takes back the bytes that attempt had counted,
    so a retried part is not counted twice.
    """

    def __init__(
        self,
        reporter: Optional[ProgressReporter],
        totals: ProgressTotals,
    ):
        self.reporter = reporter
        self.totals = totals
        self._counted: dict[Optional[int], int] = {}
        self._lock = threading.Lock()

    def on_event(self, event: ProgressEvent) -> None:
        with self._lock:
            previous = self._counted.get(event.part_number, 0)
            if event.phase in (ProgressPhase.STARTED, ProgressPhase.FAILED):
                delta = -previous
                self._counted[event.part_number] = 0
            else:
                delta = event.consumed_bytes - previous
                self._counted[event.part_number] = event.consumed_bytes
        if delta:
            self.totals.add(delta)

        if self.reporter is not None:
            self.reporter.on_event(event)

    def on_upload_complete(self, result) -> None:
        if self.reporter is not None:
            self.reporter.on_upload_complete(result)
