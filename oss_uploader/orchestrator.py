"""Upload orchestrator.

Coordinates one file upload:
- Stat and open the local file (the handle is closed on every exit path)
- Choose the simple or multipart strategy with one threshold comparison
- Drive the part planner and the upload session
- Report progress and the final result
"""

import logging
import os
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import BinaryIO, Optional

from oss_uploader.errors import FileNotFound, LocalIOError
from oss_uploader.models import Part, UploadConfig, UploadResult, UploadStrategy
from oss_uploader.multipart import DEFAULT_CHUNK_SIZE, UploadSession, read_part
from oss_uploader.planner import plan_parts, should_use_multipart, split_by_part_count
from oss_uploader.progress import PartProgressRelay, ProgressTotals
from oss_uploader.reporters.base import NullReporter, ProgressReporter

logger = logging.getLogger(__name__)


def stat_file(path: str) -> int:
    """Return the size of a regular file.

    Raises:
        FileNotFound: If nothing exists at path.
        LocalIOError: If path is not a regular file or cannot be stat'ed.
    """
    try:
        stat = os.stat(path)
    except FileNotFoundError as e:
        raise FileNotFound(f"file not exists [{path}]", path=path) from e
    except OSError as e:
        raise LocalIOError(f"Cannot stat {path}: {e}", path=path) from e

    if not os.path.isfile(path):
        raise LocalIOError(f"Not a regular file: {path}", path=path)
    return stat.st_size


def open_file(path: str) -> BinaryIO:
    """Open path for binary reading, translating errors to LocalIOError."""
    try:
        return open(path, "rb")
    except FileNotFoundError as e:
        raise FileNotFound(f"file not exists [{path}]", path=path) from e
    except OSError as e:
        raise LocalIOError(f"Cannot open {path}: {e}", path=path) from e


class Uploader:
    """Uploads one local file to one object key.

    Args:
        bucket: Storage backend (see oss_uploader.backend.Bucket)
        config: Upload configuration
        reporter: Optional progress sink
        chunk_size: Size of each read from the local file
    """

    def __init__(
        self,
        bucket,
        config: UploadConfig,
        reporter: Optional[ProgressReporter] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.bucket = bucket
        self.config = config
        self.reporter = reporter or NullReporter()
        self.chunk_size = chunk_size

    def upload(self, local_path: str, key: str) -> UploadResult:
        """Upload local_path to key.

        Returns:
            UploadResult describing the committed object.

        Raises:
            FileNotFound, LocalIOError: If the local file cannot be read.
            BackendError: If the object store rejects a request.
            InvariantViolation: If part bookkeeping goes wrong.
        """
        start_time = time.time()
        size = stat_file(local_path)

        with open_file(local_path) as handle:
            if should_use_multipart(size, self.config.part_size):
                result = self._multipart_upload(handle, local_path, key, size)
            else:
                result = self._simple_upload(handle, key, size)

        result.duration_seconds = time.time() - start_time
        self.reporter.on_upload_complete(result)
        return result

    def _simple_upload(self, handle: BinaryIO, key: str, size: int) -> UploadResult:
        logger.info("Uploading %s (%d bytes) in a single request", key, size)
        whole = Part(part_number=1, offset=0, size=size)
        remote = self.bucket.put_whole(
            key,
            lambda: read_part(handle, whole, self.chunk_size),
            size,
            self.reporter,
        )
        return UploadResult(
            key=key,
            strategy=UploadStrategy.SIMPLE,
            size=size,
            etag=remote.etag,
            part_count=1,
            bytes_transferred=size,
        )

    def _multipart_upload(
        self,
        handle: BinaryIO,
        local_path: str,
        key: str,
        size: int,
    ) -> UploadResult:
        if self.config.part_count:
            parts = split_by_part_count(size, self.config.part_count)
        else:
            parts = plan_parts(size, self.config.part_size)
        totals = ProgressTotals(size)
        relay = PartProgressRelay(self.reporter, totals)
        logger.info("Uploading %s (%d bytes) in %d parts", key, size, len(parts))

        with UploadSession(
            self.bucket, key, parts, abort_on_failure=self.config.abort_on_failure,
        ) as session:
            if self.config.concurrency > 1 and len(parts) > 1:
                self._upload_parts_concurrently(session, local_path, parts, relay)
            else:
                self._upload_parts_sequentially(session, handle, parts, relay)
            remote = session.complete()

        return UploadResult(
            key=key,
            strategy=UploadStrategy.MULTIPART,
            size=size,
            etag=remote.etag,
            part_count=len(parts),
            upload_id=session.upload_id,
            bytes_transferred=totals.consumed,
        )

    def _upload_parts_sequentially(
        self,
        session: UploadSession,
        handle: BinaryIO,
        parts: list[Part],
        reporter: ProgressReporter,
    ) -> None:
        for part in parts:
            logger.info("upload part %d/%d", part.part_number, len(parts))
            session.upload_part(
                part,
                lambda part=part: read_part(handle, part, self.chunk_size),
                reporter,
            )

    def _upload_parts_concurrently(
        self,
        session: UploadSession,
        local_path: str,
        parts: list[Part],
        reporter: ProgressReporter,
    ) -> None:
        """Upload parts on a bounded worker pool.

        Each worker opens its own handle, so no seek position is shared.
        The first failure cancels parts that have not started yet; parts
        already uploaded stay recorded.
        """
        cancelled = threading.Event()

        def upload_one(part: Part) -> None:
            if cancelled.is_set():
                return
            with open_file(local_path) as part_handle:
                session.upload_part(
                    part,
                    lambda: read_part(part_handle, part, self.chunk_size),
                    reporter,
                )

        workers = min(self.config.concurrency, len(parts))
        logger.info("Uploading %d parts with %d workers", len(parts), workers)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(upload_one, part) for part in parts]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)

            failed = [f for f in futures if f in done and f.exception() is not None]
            if failed:
                cancelled.set()
                for future in pending:
                    future.cancel()
                error = failed[0].exception()
                logger.error("Part upload failed, cancelling remaining parts: %s", error)
                raise error
