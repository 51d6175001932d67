"""Storage backend capability for S3-compatible object stores.

Bucket wraps the handful of object store operations the uploader needs:

- put_whole: single-request upload of a whole file
- initiate_multipart / upload_part / complete_multipart / abort_multipart

Control-plane calls go through boto3. File bytes are sent with httpx to
presigned URLs that carry the signed Content-Length, so the body can be
streamed chunk by chunk with progress reporting.

All botocore and httpx failures leave this module as BackendError. Errors
raised while reading the local file (LocalIOError) pass through unchanged.
"""

import logging
import re
import time
from typing import Any, Callable, Iterable, Optional

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from oss_uploader.errors import BackendError, UploadError
from oss_uploader.models import Part, PartResult, RemoteObject
from oss_uploader.progress import TransferTracker
from oss_uploader.reporters.base import ProgressReporter
from oss_uploader.retry import (
    RetryExhausted,
    RetryPolicy,
    is_retryable_error,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)

# Presigned URLs only need to outlive a single (possibly retried) PUT
PRESIGNED_URL_EXPIRY = 3600

_ERROR_CODE_PATTERN = re.compile(r"<Code>([^<]+)</Code>")

ReaderFactory = Callable[[], Iterable[bytes]]


def translate_error(error: Exception, action: str) -> UploadError:
    """Convert an SDK or HTTP exception into an uploader error.

    Uploader errors are returned unchanged.
    """
    if isinstance(error, UploadError):
        return error

    if isinstance(error, RetryExhausted):
        last = error.last_error
        translated = translate_error(last, action) if last is not None else None
        return BackendError(
            f"{action} failed after {error.attempts} attempts: {last}",
            status_code=getattr(translated, "status_code", None),
            error_code=getattr(translated, "error_code", None),
        )

    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        code = details.get("Code")
        message = details.get("Message") or str(error)
        return BackendError(
            f"{action} failed: {code}: {message}",
            status_code=status,
            error_code=code,
            retryable=is_retryable_error(error),
        )

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        code = _error_code_from_body(response)
        label = f"{response.status_code} {code}" if code else str(response.status_code)
        return BackendError(
            f"{action} failed: HTTP {label}",
            status_code=response.status_code,
            error_code=code,
            retryable=is_retryable_error(error),
        )

    if isinstance(error, (httpx.HTTPError, BotoCoreError)):
        return BackendError(
            f"{action} failed: {error}",
            retryable=is_retryable_error(error),
        )

    return BackendError(f"{action} failed: {error}")


def _error_code_from_body(response: httpx.Response) -> Optional[str]:
    try:
        match = _ERROR_CODE_PATTERN.search(response.text)
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return None
    return match.group(1) if match else None


class Bucket:
    """One bucket of an S3-compatible object store.

    Args:
        s3_client: boto3 S3 client
        http_client: httpx client for presigned PUT requests
        bucket_name: Name of the bucket
        retry_policy: Retry policy for transient failures
        sleep: Function used to wait between retries
    """

    def __init__(
        self,
        s3_client: Any,
        http_client: httpx.Client,
        bucket_name: str,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.s3_client = s3_client
        self.http_client = http_client
        self.bucket_name = bucket_name
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=1)
        self._sleep = sleep

    def put_whole(
        self,
        key: str,
        open_reader: ReaderFactory,
        size: int,
        reporter: Optional[ProgressReporter] = None,
    ) -> RemoteObject:
        """Upload a whole object in one request.

        Args:
            key: Destination object key
            open_reader: Returns a fresh iterator over the object bytes
            size: Exact number of bytes the reader yields
            reporter: Progress sink for this transfer

        Returns:
            Handle of the committed object.
        """
        url = self._presign("put_object", {
            "Bucket": self.bucket_name,
            "Key": key,
            "ContentLength": size,
        })
        etag = self._retrying(
            f"Upload of {key}",
            self._put, url, open_reader, size, reporter, None,
        )
        return RemoteObject(key=key, etag=etag)

    def initiate_multipart(self, key: str) -> str:
        """Start a multipart upload and return its upload ID."""
        response = self._call(
            f"Initiating multipart upload of {key}",
            "create_multipart_upload",
            Bucket=self.bucket_name,
            Key=key,
        )
        upload_id = response.get("UploadId")
        if not upload_id:
            raise BackendError(f"Object store returned no upload ID for {key}")
        return upload_id

    def upload_part(
        self,
        key: str,
        upload_id: str,
        part: Part,
        open_reader: ReaderFactory,
        reporter: Optional[ProgressReporter] = None,
    ) -> PartResult:
        """Upload one part of a multipart upload.

        A retry re-sends the same part number, which replaces any bytes the
        failed attempt may have stored.
        """
        url = self._presign("upload_part", {
            "Bucket": self.bucket_name,
            "Key": key,
            "UploadId": upload_id,
            "PartNumber": part.part_number,
            "ContentLength": part.size,
        })
        etag = self._retrying(
            f"Upload of part {part.part_number}",
            self._put, url, open_reader, part.size, reporter, part.part_number,
        )
        if not etag:
            raise BackendError(f"Object store returned no ETag for part {part.part_number}")
        return PartResult(part_number=part.part_number, etag=etag)

    def complete_multipart(
        self,
        key: str,
        upload_id: str,
        parts: list[PartResult],
    ) -> RemoteObject:
        """Commit the uploaded parts as one object.

        parts must already be sorted by part number.
        """
        response = self._call(
            f"Completing multipart upload of {key}",
            "complete_multipart_upload",
            Bucket=self.bucket_name,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": [part.to_dict() for part in parts]},
        )
        return RemoteObject(key=key, etag=response.get("ETag"))

    def abort_multipart(self, key: str, upload_id: str) -> None:
        """Discard a multipart upload and the parts stored for it."""
        self._call(
            f"Aborting multipart upload of {key}",
            "abort_multipart_upload",
            Bucket=self.bucket_name,
            Key=key,
            UploadId=upload_id,
        )

    def _presign(self, operation: str, params: dict[str, Any]) -> str:
        try:
            return self.s3_client.generate_presigned_url(
                operation,
                Params=params,
                ExpiresIn=PRESIGNED_URL_EXPIRY,
                HttpMethod="PUT",
            )
        except (BotoCoreError, ClientError) as e:
            raise translate_error(e, f"Signing {operation} request") from e

    def _put(
        self,
        url: str,
        open_reader: ReaderFactory,
        size: int,
        reporter: Optional[ProgressReporter],
        part_number: Optional[int],
    ) -> Optional[str]:
        """Send one PUT attempt and return the ETag header."""
        tracker = TransferTracker(reporter, size, part_number)
        tracker.start()
        try:
            response = self.http_client.put(
                url,
                content=tracker.wrap(open_reader()),
                headers={"Content-Length": str(size)},
            )
            response.raise_for_status()
        except Exception:
            tracker.fail()
            raise
        tracker.complete()
        return response.headers.get("ETag")

    def _call(self, action: str, method: str, **kwargs: Any) -> dict:
        func = getattr(self.s3_client, method)
        return self._retrying(action, func, **kwargs)

    def _retrying(self, action: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return retry_with_backoff(
                func,
                max_attempts=self.retry_policy.max_attempts,
                delays=self.retry_policy.delays,
                args=args,
                kwargs=kwargs,
                sleep=self._sleep,
            )
        except Exception as e:
            raise translate_error(e, action) from e


def open_bucket(
    s3_client: Any,
    http_client: httpx.Client,
    bucket_name: str,
    retry_policy: Optional[RetryPolicy] = None,
) -> Bucket:
    """Check that a bucket is reachable and return a Bucket for it.

    Raises:
        BackendError: If the bucket does not exist, access is denied,
            or the object store cannot be reached.
    """
    try:
        s3_client.head_bucket(Bucket=bucket_name)
    except ClientError as e:
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status == 404:
            raise BackendError(
                f"Bucket not found: {bucket_name}",
                status_code=404,
                error_code="NoSuchBucket",
            ) from e
        if status == 403:
            raise BackendError(
                f"Access denied to bucket: {bucket_name}",
                status_code=403,
                error_code="AccessDenied",
            ) from e
        raise translate_error(e, f"Opening bucket {bucket_name}") from e
    except BotoCoreError as e:
        raise translate_error(e, f"Opening bucket {bucket_name}") from e

    logger.debug("Opened bucket %s", bucket_name)
    return Bucket(s3_client, http_client, bucket_name, retry_policy)
