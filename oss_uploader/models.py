"""Data models for the OSS uploader."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ProgressPhase(Enum):
    """Lifecycle phase of a tracked transfer."""

    STARTED = "started"
    DATA_TRANSFERRED = "data"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionState(Enum):
    """State of a multipart upload session."""

    UNINITIATED = "uninitiated"
    INITIATED = "initiated"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class UploadStrategy(Enum):
    """How a file was sent to the object store."""

    SIMPLE = "simple"
    MULTIPART = "multipart"


@dataclass(frozen=True)
class Part:
    """One contiguous byte range of the source file."""

    part_number: int
    offset: int
    size: int

    @property
    def end(self) -> int:
        """Exclusive end offset of the range."""
        return self.offset + self.size


@dataclass(frozen=True)
class PartResult:
    """Acknowledgement returned by the object store for one uploaded part."""

    part_number: int
    etag: str

    def to_dict(self) -> dict[str, Any]:
        return {"PartNumber": self.part_number, "ETag": self.etag}


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification for a tracked transfer.

    part_number is None for a whole-file transfer.
    """

    phase: ProgressPhase
    consumed_bytes: int
    total_bytes: int
    part_number: Optional[int] = None

    @property
    def percent(self) -> int:
        """Completion percentage, 0 when the transfer has no bytes."""
        if self.total_bytes <= 0:
            return 0
        return self.consumed_bytes * 100 // self.total_bytes


@dataclass(frozen=True)
class RemoteObject:
    """Handle of an object committed to the bucket."""

    key: str
    etag: Optional[str] = None


@dataclass
class UploadResult:
    """Outcome of a successful upload."""

    key: str
    strategy: UploadStrategy
    size: int
    etag: Optional[str] = None
    part_count: int = 1
    upload_id: Optional[str] = None
    bytes_transferred: int = 0
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "key": self.key,
            "strategy": self.strategy.value,
            "size": self.size,
            "etag": self.etag,
            "part_count": self.part_count,
            "upload_id": self.upload_id,
            "bytes_transferred": self.bytes_transferred,
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class UploadConfig:
    """Settings for one upload, built once at startup.

    part_size is the multipart threshold. Parts are part_size slices
    unless part_count is set, in which case a multipart upload is split
    into that many equal parts.
    """

    endpoint_url: str
    bucket_name: str
    object_key: str
    file_path: str
    access_key_id: str
    access_key_secret: str
    region_name: str = "us-east-1"
    addressing_style: str = "virtual"
    part_size: int = 1 << 30
    part_count: Optional[int] = None
    concurrency: int = 1
    max_attempts: int = 3
    retry_delays: tuple[float, ...] = (5.0, 15.0, 30.0)
    abort_on_failure: bool = True
    http_timeout: float = 60.0
