"""Server-side copy of large objects through concurrent multipart upload.

``copy_object_multipart`` runs the whole saga: head the source, create the
destination upload, copy every byte range concurrently with ``copy_parts``
and complete the upload. ``copy_parts`` can also be called on its own when
the caller already holds an upload id.
"""

import logging
import os
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from operator import attrgetter
from typing import Any, Dict, List, Optional, Tuple, Union

from multipart_copy.config import DEFAULT_CHUNK_SIZE, CopyConfig
from multipart_copy.exceptions import (
    CopyError,
    MultipartCopyError,
    PartCopyError,
    TaskFaultError,
)
from multipart_copy.logger import get_logger, log_with_context
from multipart_copy.partitioner import (
    ByteRange,
    Direction,
    content_byte_ranges,
    part_count,
    validate_partition,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CopyOptions:
    """Per-call tuning for a multipart copy."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_concurrency: int = 0  # 0 means one worker per host core
    start_index: int = 0
    kms_key_id: str = ""
    abort_on_failure: bool = False

    @classmethod
    def from_config(cls, config: CopyConfig) -> "CopyOptions":
        return cls(
            chunk_size=config.multipart_chunk_size_bytes,
            max_concurrency=config.max_concurrency,
            kms_key_id=config.destination_kms_key_id,
            abort_on_failure=config.abort_on_failure,
        )

    def effective_concurrency(self) -> int:
        if self.max_concurrency > 0:
            return self.max_concurrency
        return os.cpu_count() or 1


@dataclass(frozen=True)
class CopySpec:
    """Coordinates of one multipart copy, fixed for its whole duration."""

    dest_bucket: str
    dest_key: str
    source_bucket: str
    source_key: str
    upload_id: str
    content_length: int

    def context(self) -> Dict[str, Any]:
        return {
            "dest_bucket": self.dest_bucket,
            "dest_key": self.dest_key,
            "source_bucket": self.source_bucket,
            "source_key": self.source_key,
            "upload_id": self.upload_id,
        }


@dataclass(frozen=True)
class PartSuccess:
    part_number: int
    etag: str
    last_modified: str = ""


@dataclass(frozen=True)
class PartFailure:
    part_number: int
    error: PartCopyError


PartResult = Union[PartSuccess, PartFailure]


def copy_part(
    backend,
    spec: CopySpec,
    part_number: int,
    byte_range: ByteRange,
) -> PartResult:
    """Copy one byte range into one part; never retries.

    ``backend`` and ``spec`` lead, matching ``copy_parts``; ``part_number``
    and ``byte_range`` name the unit of work. Storage errors come back as a
    PartFailure tagged with the part number. Anything else propagates to the
    caller.
    """
    logger.debug(
        "Copying part %d bytes=%d-%d of s3://%s/%s into upload %s",
        part_number,
        byte_range.start,
        byte_range.end,
        spec.source_bucket,
        spec.source_key,
        spec.upload_id,
    )
    try:
        result = backend.upload_part_copy(
            spec.dest_bucket,
            spec.dest_key,
            spec.source_bucket,
            spec.source_key,
            spec.upload_id,
            part_number,
            byte_range,
        )
    except CopyError as e:
        logger.warning("Part %d of upload %s failed: %s", part_number, spec.upload_id, e)
        return PartFailure(
            part_number,
            PartCopyError(
                f"Part {part_number} failed: {e}",
                part_number=part_number,
                byte_range=byte_range,
                cause=e,
                details={**spec.context(), **e.details, "part_number": part_number},
            ),
        )
    return PartSuccess(part_number, result["ETag"], result.get("LastModified", ""))


def _collect(future, spec: CopySpec, part_number: int, byte_range: ByteRange) -> PartResult:
    try:
        return future.result()
    except BaseException as e:
        logger.error(
            "Part %d copy task for upload %s did not complete",
            part_number,
            spec.upload_id,
            exc_info=True,
        )
        return PartFailure(
            part_number,
            TaskFaultError(
                "Part copy task did not complete",
                part_number=part_number,
                byte_range=byte_range,
                cause=e,
                details={**spec.context(), "part_number": part_number, "reason": repr(e)},
            ),
        )


def copy_parts(
    backend,
    dest_bucket: str,
    dest_key: str,
    source_bucket: str,
    source_key: str,
    upload_id: str,
    content_length: int,
    options: Optional[CopyOptions] = None,
) -> List[Tuple[int, str]]:
    """Copy every part of the source into an existing multipart upload.

    Returns ``[(part_number, etag), ...]`` in ascending part order. If any
    part fails, waits for the rest anyway and raises MultipartCopyError with
    every failure in ascending part order; successful parts are discarded.
    """
    options = options or CopyOptions()
    spec = CopySpec(
        dest_bucket=dest_bucket,
        dest_key=dest_key,
        source_bucket=source_bucket,
        source_key=source_key,
        upload_id=upload_id,
        content_length=content_length,
    )
    ranges = content_byte_ranges(
        options.start_index, content_length, options.chunk_size, Direction.FORWARD
    )
    workers = options.effective_concurrency()

    results: List[PartResult] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="copy-part") as executor:
        futures = {
            executor.submit(copy_part, backend, spec, part_number, byte_range): (
                part_number,
                byte_range,
            )
            for part_number, byte_range in enumerate(ranges, start=1)
        }
        for future in as_completed(futures):
            part_number, byte_range = futures[future]
            results.append(_collect(future, spec, part_number, byte_range))

    failures = sorted(
        (r for r in results if isinstance(r, PartFailure)),
        key=attrgetter("part_number"),
    )
    if failures:
        raise MultipartCopyError(
            f"{len(failures)} of {len(results)} parts failed for upload {upload_id}",
            errors=[f.error for f in failures],
            details={
                "bucket": dest_bucket,
                "key": dest_key,
                "upload_id": upload_id,
                "failed_parts": [f.part_number for f in failures],
                "total_parts": len(results),
            },
        )

    successes = sorted(results, key=attrgetter("part_number"))
    return [(s.part_number, s.etag) for s in successes]


def _abort_quietly(backend, bucket: str, key: str, upload_id: str) -> None:
    logger.warning("Aborting multipart upload %s for s3://%s/%s", upload_id, bucket, key)
    try:
        backend.abort_multipart_upload(bucket, key, upload_id)
    except CopyError:
        logger.error("Failed to abort multipart upload %s", upload_id, exc_info=True)


def copy_object_multipart(
    backend,
    dest_bucket: str,
    dest_key: str,
    source_bucket: str,
    source_key: str,
    options: Optional[CopyOptions] = None,
    operation_id: str = "",
) -> Dict[str, Any]:
    """Copy a large object server-side through a multipart upload.

    Stops at the first failing step. When parts fail the upload is left in
    place unless ``options.abort_on_failure`` is set; the raised error's
    ``details`` name the upload either way.
    """
    options = options or CopyOptions()
    operation_id = operation_id or str(uuid.uuid4())

    head = backend.head_object(source_bucket, source_key)
    content_length = head["ContentLength"]
    validate_partition(
        options.start_index, content_length, options.chunk_size, Direction.FORWARD
    )

    log_with_context(
        logger,
        logging.INFO,
        "Multipart copy started",
        operation_id=operation_id,
        source=f"s3://{source_bucket}/{source_key}",
        destination=f"s3://{dest_bucket}/{dest_key}",
        content_length=content_length,
        chunk_size=options.chunk_size,
        parts=part_count(content_length, options.chunk_size),
        max_concurrency=options.effective_concurrency(),
    )

    upload_id = backend.create_multipart_upload(
        dest_bucket, dest_key, kms_key_id=options.kms_key_id
    )

    try:
        parts = copy_parts(
            backend,
            dest_bucket,
            dest_key,
            source_bucket,
            source_key,
            upload_id,
            content_length,
            options,
        )
    except MultipartCopyError as e:
        log_with_context(
            logger,
            logging.ERROR,
            "Multipart copy failed",
            operation_id=operation_id,
            upload_id=upload_id,
            failed_parts=e.part_numbers,
            aborted=options.abort_on_failure,
        )
        if options.abort_on_failure:
            _abort_quietly(backend, dest_bucket, dest_key, upload_id)
        raise

    result = backend.complete_multipart_upload(dest_bucket, dest_key, upload_id, parts)

    log_with_context(
        logger,
        logging.INFO,
        "Multipart copy complete",
        operation_id=operation_id,
        upload_id=upload_id,
        parts=len(parts),
        etag=result.get("ETag", ""),
    )
    return result
