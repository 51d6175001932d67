"""Multipart upload session management.

Handles the lifecycle of one multipart upload:
- Initiate the upload
- Track uploaded parts and their ETags
- Complete, abandon, or abort the upload

Also provides read_part(), which streams one part's byte range out of an
open file.
"""

import logging
import threading
from typing import BinaryIO, Generator, Optional

from oss_uploader.errors import InvariantViolation, LocalIOError
from oss_uploader.models import Part, PartResult, RemoteObject, SessionState
from oss_uploader.reporters.base import ProgressReporter

logger = logging.getLogger(__name__)

# Size of each read from the local file, and of each chunk handed to httpx
DEFAULT_CHUNK_SIZE = 1024 * 1024


def read_part(
    handle: BinaryIO,
    part: Part,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Generator[bytes, None, None]:
    """Yield exactly part.size bytes of handle, starting at part.offset.

    Args:
        handle: Seekable binary file handle.
        part: The byte range to read.
        chunk_size: Maximum size of each yielded chunk.

    Raises:
        LocalIOError: If seeking or reading fails, or the file ends early.
    """
    name = getattr(handle, "name", None)
    try:
        handle.seek(part.offset)
    except (OSError, ValueError) as e:
        raise LocalIOError(f"Cannot seek to offset {part.offset}: {e}", path=name) from e

    remaining = part.size
    while remaining > 0:
        try:
            chunk = handle.read(min(chunk_size, remaining))
        except (OSError, ValueError) as e:
            raise LocalIOError(f"Read failed at part {part.part_number}: {e}", path=name) from e
        if not chunk:
            raise LocalIOError(
                f"File ended {remaining} bytes early in part {part.part_number}; "
                "was it modified during upload?",
                path=name,
            )
        remaining -= len(chunk)
        yield chunk


class UploadSession:
    """Manages the lifecycle of a multipart upload.

    This class handles:
    - Initiating a multipart upload
    - Tracking uploaded parts and their ETags (thread-safe)
    - Checking recorded parts against the plan before completing
    - Abandoning or aborting the upload on failure

    Can be used as a context manager: entering initiates the upload and an
    exception inside the block abandons it (and aborts it on the object
    store when abort_on_failure is set).

    Args:
        bucket: Storage backend (see oss_uploader.backend.Bucket)
        key: Destination object key
        planned_parts: Parts produced by the planner
        abort_on_failure: Abort the remote upload when the block fails
    """

    def __init__(
        self,
        bucket,
        key: str,
        planned_parts: list[Part],
        abort_on_failure: bool = True,
    ):
        self.bucket = bucket
        self.key = key
        self.planned_parts = list(planned_parts)
        self.abort_on_failure = abort_on_failure
        self.upload_id: Optional[str] = None
        self.state = SessionState.UNINITIATED
        self._results: dict[int, PartResult] = {}
        self._lock = threading.Lock()

    def initiate(self) -> str:
        """Initiate a new multipart upload.

        Returns:
            The upload ID for the new multipart upload.

        Raises:
            InvariantViolation: If the session was already initiated.
            BackendError: If the object store rejects the request.
        """
        if self.state != SessionState.UNINITIATED:
            raise InvariantViolation(f"Upload session already {self.state.value}")

        try:
            self.upload_id = self.bucket.initiate_multipart(self.key)
        except Exception:
            self.state = SessionState.ABANDONED
            raise

        self.state = SessionState.INITIATED
        logger.info("Initiated multipart upload %s for %s", self.upload_id, self.key)
        return self.upload_id

    def upload_part(
        self,
        part: Part,
        open_reader,
        reporter: Optional[ProgressReporter] = None,
    ) -> PartResult:
        """Upload one planned part and record its result.

        Args:
            part: The part to upload
            open_reader: Returns a fresh iterator over the part's bytes
            reporter: Progress sink for this part

        Raises:
            InvariantViolation: If the session is not accepting parts.
            BackendError, LocalIOError: If the upload fails. Leaving the
                context manager with the error abandons the session.
        """
        self._require_state(SessionState.INITIATED, "upload parts")
        result = self.bucket.upload_part(
            self.key, self.upload_id, part, open_reader, reporter,
        )

        self.record(result)
        logger.debug("Uploaded part %d of %s", part.part_number, self.key)
        return result

    def record(self, result: PartResult) -> None:
        """Record a successfully uploaded part.

        Raises:
            InvariantViolation: If the part number was already recorded.
        """
        with self._lock:
            if result.part_number in self._results:
                raise InvariantViolation(
                    f"Part {result.part_number} recorded twice"
                )
            self._results[result.part_number] = result

    @property
    def completed_parts(self) -> list[PartResult]:
        """Recorded parts sorted by part number."""
        with self._lock:
            return [self._results[n] for n in sorted(self._results)]

    def complete(self) -> RemoteObject:
        """Complete the multipart upload.

        Returns:
            Handle of the committed object.

        Raises:
            InvariantViolation: If the session was not initiated, or the
                recorded parts differ from the planned parts. Nothing is
                sent to the object store in that case.
            BackendError: If the object store rejects the request.
        """
        self._require_state(SessionState.INITIATED, "complete")

        parts = self.completed_parts
        planned = {part.part_number for part in self.planned_parts}
        recorded = {part.part_number for part in parts}
        if planned != recorded:
            missing = sorted(planned - recorded)
            extra = sorted(recorded - planned)
            raise InvariantViolation(
                f"Recorded parts do not match the plan (missing: {missing}, unexpected: {extra})"
            )

        try:
            remote = self.bucket.complete_multipart(self.key, self.upload_id, parts)
        except Exception:
            self.abandon()
            raise

        self.state = SessionState.COMPLETED
        logger.info("Completed multipart upload of %s with %d parts", self.key, len(parts))
        return remote

    def abandon(self) -> None:
        """Mark the session abandoned without contacting the object store."""
        if self.state != SessionState.COMPLETED:
            self.state = SessionState.ABANDONED

    def abort(self) -> None:
        """Abort the multipart upload.

        Cleans up any uploaded parts on the object store's side.
        Safe to call even if upload was not initiated or already aborted.
        Abort errors are logged and not raised.
        """
        self.abandon()
        if self.upload_id is None or self.state == SessionState.COMPLETED:
            return

        try:
            self.bucket.abort_multipart(self.key, self.upload_id)
            logger.info("Aborted multipart upload %s for %s", self.upload_id, self.key)
        except Exception as e:
            logger.warning(
                "Could not abort multipart upload %s for %s: %s",
                self.upload_id, self.key, e,
            )

    def _require_state(self, state: SessionState, action: str) -> None:
        if self.state != state:
            raise InvariantViolation(
                f"Cannot {action}: upload session is {self.state.value}"
            )

    def __enter__(self) -> "UploadSession":
        """Enter context manager - initiates upload."""
        self.initiate()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        """Exit context manager - abandons (and maybe aborts) on exception."""
        if exc_type is not None:
            if self.abort_on_failure:
                self.abort()
            else:
                self.abandon()
                logger.warning(
                    "Left multipart upload %s for %s abandoned", self.upload_id, self.key,
                )
        return False  # Don't suppress exceptions
