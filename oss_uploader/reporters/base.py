"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from oss_uploader.models import ProgressEvent, UploadResult


class ProgressReporter(ABC):
    """Abstract base class for transfer progress sinks.

    on_event is called synchronously from whichever transfer is in flight,
    possibly from several worker threads at once. Implementations must
    return quickly and must not raise.
    """

    @abstractmethod
    def on_event(self, event: "ProgressEvent") -> None:
        """Called for every progress event of a tracked transfer."""
        pass

    def on_upload_complete(self, result: "UploadResult") -> None:
        """Called once after the whole upload succeeded."""
        pass


class NullReporter(ProgressReporter):
    """Reporter that discards all events."""

    def on_event(self, event: "ProgressEvent") -> None:
        pass
