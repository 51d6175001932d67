"""Reporter modules for transfer progress output."""

from .base import NullReporter, ProgressReporter
from .console import ConsoleReporter
from .json_reporter import JsonReporter

__all__ = ["ProgressReporter", "NullReporter", "ConsoleReporter", "JsonReporter"]
