"""Split an object into inclusive byte ranges for multipart copy."""

from enum import Enum
from typing import Iterator, NamedTuple

from multipart_copy.exceptions import (
    ConfigurationError,
    ObjectTooLargeError,
    ObjectTooSmallError,
    PartLimitExceededError,
    StartIndexOutOfRangeError,
)

MIB = 1024 * 1024
TIB = 1024 * 1024 * MIB

# Smallest part S3 accepts, except for the last part of an upload (5 MiB)
MIN_PART_SIZE = 5 * MIB

# Largest object S3 stores (5 TiB)
MAX_OBJECT_SIZE = 5 * TIB

MAX_PARTS = 10_000


class Direction(Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


class ByteRange(NamedTuple):
    """Inclusive ``[start, end]`` byte offsets into the source object."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def header(self) -> str:
        """Render as an HTTP range, e.g. ``bytes=0-5242879``."""
        return f"bytes={self.start}-{self.end}"


def part_count(content_length: int, chunk_size: int) -> int:
    """Number of parts needed to cover ``content_length`` bytes."""
    return -(-content_length // chunk_size)


def validate_partition(
    start_index: int,
    content_length: int,
    chunk_size: int,
    direction: Direction = Direction.FORWARD,
) -> None:
    """Raise a ConfigurationError if the partition cannot be produced."""
    if chunk_size <= 0:
        raise ConfigurationError(
            f"chunk_size must be > 0, got {chunk_size}",
            details={"chunk_size": chunk_size},
        )
    if start_index < 0:
        raise StartIndexOutOfRangeError(
            f"start_index must be >= 0, got {start_index}",
            details={"start_index": start_index},
        )
    if content_length < MIN_PART_SIZE:
        raise ObjectTooSmallError(
            f"content_length {content_length} is below the {MIN_PART_SIZE} byte "
            "multipart minimum; use a single copy instead",
            details={"content_length": content_length},
        )
    if content_length > MAX_OBJECT_SIZE:
        raise ObjectTooLargeError(
            f"content_length {content_length} exceeds max {MAX_OBJECT_SIZE}",
            details={"content_length": content_length},
        )

    required_parts = part_count(content_length, chunk_size)
    if required_parts > MAX_PARTS:
        raise PartLimitExceededError(
            f"{required_parts} parts would exceed {MAX_PARTS}; increase chunk_size",
            details={
                "content_length": content_length,
                "chunk_size": chunk_size,
                "required_parts": required_parts,
            },
        )

    offset = start_index * chunk_size
    if direction is Direction.FORWARD and offset >= content_length:
        raise StartIndexOutOfRangeError(
            f"start_index {start_index} is out of range",
            details={"start_index": start_index, "offset": offset},
        )
    if direction is Direction.BACKWARD and content_length - 1 - offset < 0:
        raise StartIndexOutOfRangeError(
            f"start_index {start_index} is out of range",
            details={"start_index": start_index, "offset": offset},
        )


def content_byte_ranges(
    start_index: int,
    content_length: int,
    chunk_size: int,
    direction: Direction = Direction.FORWARD,
) -> Iterator[ByteRange]:
    """Return a lazy iterator of ranges covering the object.

    Forward ranges begin at ``start_index * chunk_size`` and walk towards the
    end; backward ranges end at ``content_length - 1 - start_index * chunk_size``
    and walk towards zero. The final range is clamped to the object bounds.

    Arguments are validated when this function is called, not on first
    iteration.

        >>> list(content_byte_ranges(0, 15 * MIB, 5 * MIB))
        [ByteRange(start=0, end=5242879), ByteRange(start=5242880, end=10485759), ByteRange(start=10485760, end=15728639)]
    """
    direction = Direction(direction)
    validate_partition(start_index, content_length, chunk_size, direction)

    if direction is Direction.FORWARD:
        return _forward(start_index * chunk_size, content_length, chunk_size)
    return _backward(
        content_length - 1 - start_index * chunk_size, chunk_size
    )


def _forward(pos: int, content_length: int, chunk_size: int) -> Iterator[ByteRange]:
    while pos < content_length:
        end = min(pos + chunk_size - 1, content_length - 1)
        yield ByteRange(pos, end)
        pos = end + 1


def _backward(pos: int, chunk_size: int) -> Iterator[ByteRange]:
    while pos >= 0:
        start = max(0, pos - (chunk_size - 1))
        yield ByteRange(start, pos)
        pos = start - 1
