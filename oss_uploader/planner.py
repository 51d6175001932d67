"""Part planning for multipart uploads.

Splits a file of a known size into an ordered list of byte ranges. The
planner never decides whether multipart is warranted; callers use
should_use_multipart() for that.

Every plan satisfies:
- part numbers are 1..n with no gaps
- ranges cover [0, file_size) exactly, without overlap
"""

from oss_uploader.errors import ConfigurationError, InvariantViolation
from oss_uploader.models import Part

# Maximum number of parts accepted by S3 and OSS for one upload
MAX_PART_COUNT = 10000

# Default part size and multipart threshold: 1 GiB
DEFAULT_PART_SIZE = 1 << 30


def should_use_multipart(file_size: int, part_size: int) -> bool:
    """Return True when a file is too large for a single PUT."""
    return file_size > part_size


def part_count_for(file_size: int, part_size: int) -> int:
    """Number of parts needed to cover file_size with part_size slices."""
    return -(-file_size // part_size)


def plan_parts(file_size: int, part_size: int) -> list[Part]:
    """Plan fixed-size parts for a file.

    Every part is part_size bytes long except the last, which holds
    whatever remains.

    Args:
        file_size: Size of the file in bytes. Must be positive.
        part_size: Target size of each part in bytes.

    Returns:
        Parts ordered by part number.

    Raises:
        InvariantViolation: If file_size is not positive. Empty files
            must go through the simple upload path.
        ConfigurationError: If part_size is not positive, or would
            produce more than MAX_PART_COUNT parts.
    """
    _check_inputs(file_size, part_size)

    count = part_count_for(file_size, part_size)
    _check_count(file_size, count)

    parts = []
    for index in range(count):
        offset = index * part_size
        parts.append(Part(
            part_number=index + 1,
            offset=offset,
            size=min(part_size, file_size - offset),
        ))
    return parts


def split_by_part_count(file_size: int, part_count: int) -> list[Part]:
    """Split a file into part_count ranges of equal size.

    Each part gets file_size // part_count bytes and the remainder is
    folded into the last part, which is how object store SDKs split a
    file when asked for a number of parts rather than a part size.

    Raises:
        InvariantViolation: If file_size is not positive.
        ConfigurationError: If part_count is not in 1..MAX_PART_COUNT or
            exceeds file_size.
    """
    if file_size <= 0:
        raise InvariantViolation(
            f"Cannot plan parts for a file of {file_size} bytes"
        )
    if part_count <= 0 or part_count > MAX_PART_COUNT:
        raise ConfigurationError(
            f"Part count must be between 1 and {MAX_PART_COUNT}, got {part_count}"
        )
    if part_count > file_size:
        raise ConfigurationError(
            f"Cannot split {file_size} bytes into {part_count} parts"
        )

    size = file_size // part_count
    parts = []
    for index in range(part_count):
        offset = index * size
        if index == part_count - 1:
            length = file_size - offset
        else:
            length = size
        parts.append(Part(part_number=index + 1, offset=offset, size=length))
    return parts


def _check_inputs(file_size: int, part_size: int) -> None:
    if file_size <= 0:
        raise InvariantViolation(
            f"Cannot plan parts for a file of {file_size} bytes"
        )
    if part_size <= 0:
        raise ConfigurationError(f"Part size must be positive, got {part_size}")


def _check_count(file_size: int, count: int) -> None:
    if count > MAX_PART_COUNT:
        minimum = part_count_for(file_size, MAX_PART_COUNT)
        raise ConfigurationError(
            f"File of {file_size} bytes needs {count} parts "
            f"(limit {MAX_PART_COUNT}); use a part size of at least {minimum} bytes"
        )
