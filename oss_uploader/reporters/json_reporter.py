"""JSON reporter for structured upload summaries.

Collects the final state of every tracked transfer and writes a summary
document once the upload has succeeded:

    {
      "timestamp": "...",
      "upload": {...UploadResult...},
      "transfers": [{"part_number": 1, "status": "completed", ...}, ...]
    }
"""

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from oss_uploader.models import ProgressEvent, ProgressPhase, UploadResult
from oss_uploader.reporters.base import ProgressReporter


class JsonReporter(ProgressReporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path
        self._transfers: dict[Optional[int], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def on_event(self, event: ProgressEvent) -> None:
        """Track the latest state of each transfer."""
        if event.phase == ProgressPhase.DATA_TRANSFERRED:
            return

        with self._lock:
            entry = self._transfers.setdefault(event.part_number, {
                "part_number": event.part_number,
                "attempts": 0,
            })
            if event.phase == ProgressPhase.STARTED:
                entry["attempts"] += 1
            entry["status"] = event.phase.value
            entry["consumed_bytes"] = event.consumed_bytes
            entry["total_bytes"] = event.total_bytes

    def on_upload_complete(self, result: UploadResult) -> dict:
        """Build the summary and write it to output_path if set.

        Returns:
            The generated JSON data as a dictionary
        """
        output = self._generate_output(result)
        if self.output_path:
            self._write_to_file(output)
        return output

    def _generate_output(self, result: UploadResult) -> dict:
        with self._lock:
            transfers = sorted(
                (dict(entry) for entry in self._transfers.values()),
                key=lambda entry: entry["part_number"] or 0,
            )
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "upload": result.to_dict(),
            "transfers": transfers,
        }

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)
