"""Exception hierarchy for the uploader.

Every failure that can end an upload is one of four kinds:

- ConfigurationError: a required input is missing or invalid
- LocalIOError: the local file cannot be found, opened or read
- BackendError: the object store rejected a request or was unreachable
- InvariantViolation: part bookkeeping went wrong (a defect, not the environment)
"""

from typing import Optional


class UploadError(Exception):
    """Base class for all uploader errors."""

    pass


class ConfigurationError(UploadError):
    """Raised when required configuration is missing or invalid."""

    pass


class LocalIOError(UploadError):
    """Raised when the local source file cannot be read."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class FileNotFound(LocalIOError):
    """Raised when the local source file does not exist."""

    pass


class BackendError(UploadError):
    """Raised when the object store rejects or fails a request.

    Args:
        message: Human-readable description
        status_code: HTTP status code, if the failure had one
        error_code: S3 error code (e.g. "NoSuchUpload"), if known
        retryable: Whether the failure looks transient
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable


class InvariantViolation(UploadError):
    """Raised when planned and recorded parts disagree."""

    pass
