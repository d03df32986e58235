"""CopyObject Lambda: server-side copy, multipart for objects above the threshold."""

import logging

from multipart_copy.backend import S3Backend, create_s3_client
from multipart_copy.config import DEFAULT_MULTIPART_THRESHOLD, CopyConfig
from multipart_copy.logger import get_logger, log_with_context
from multipart_copy.multipart import CopyOptions, copy_object_multipart
from multipart_copy.partitioner import MIN_PART_SIZE
from multipart_copy.retry import RetryPolicy

logger = get_logger(__name__)


def _destination_key(source_key: str, source_prefix: str, dest_prefix: str) -> str:
    if source_prefix and source_key.startswith(source_prefix):
        relative_key = source_key[len(source_prefix):]
    else:
        relative_key = source_key
    return f"{dest_prefix}{relative_key}" if dest_prefix else relative_key


def handler(event: dict, context) -> dict:
    """Copy a single object from source to destination bucket.

    Input event:
        {
            "Key": "path/to/object.bin",
            "Size": 12345,                      # optional, HEAD when missing
            "source_bucket": "...",
            "destination_bucket": "...",
            "source_prefix": "...",
            "destination_prefix": "...",
            "destination_key": "...",           # optional, overrides prefixes
            "execution_id": "..."
        }

    Returns:
        {
            "status": "SUCCESS",
            "method": "copy_object" | "multipart",
            "source_key": "...",
            "dest_key": "...",
            "size": 12345,
            "etag": "...",
        }
    """
    request_id = getattr(context, "aws_request_id", "local")
    config = CopyConfig.from_env()

    source_key = event["Key"]
    source_bucket = event.get("source_bucket", config.source_bucket)
    dest_bucket = event.get("destination_bucket", config.destination_bucket)
    source_prefix = event.get("source_prefix", config.source_prefix)
    dest_prefix = event.get("destination_prefix", config.destination_prefix)
    execution_id = event.get("execution_id", request_id)
    dest_key = event.get("destination_key") or _destination_key(
        source_key, source_prefix, dest_prefix
    )

    backend = S3Backend(create_s3_client(config), RetryPolicy.from_config(config))

    object_size = event.get("Size")
    if object_size is None:
        object_size = backend.head_object(source_bucket, source_key)["ContentLength"]

    # S3 refuses single-request copies above 5 GiB
    threshold = min(
        max(config.multipart_threshold_bytes, MIN_PART_SIZE),
        DEFAULT_MULTIPART_THRESHOLD,
    )
    method = "copy_object" if object_size < threshold else "multipart"

    log_with_context(
        logger,
        logging.INFO,
        "CopyObject started",
        operation_id=execution_id,
        request_id=request_id,
        source_key=source_key,
        dest_key=dest_key,
        size=object_size,
        method=method,
    )

    try:
        if method == "copy_object":
            result = backend.copy_object(
                source_bucket,
                source_key,
                dest_bucket,
                dest_key,
                kms_key_id=config.destination_kms_key_id,
            )
        else:
            result = copy_object_multipart(
                backend,
                dest_bucket,
                dest_key,
                source_bucket,
                source_key,
                options=CopyOptions.from_config(config),
                operation_id=execution_id,
            )
    except Exception as e:
        log_with_context(
            logger,
            logging.ERROR,
            "CopyObject failed",
            operation_id=execution_id,
            request_id=request_id,
            source_key=source_key,
            dest_key=dest_key,
            error=str(e),
            details=getattr(e, "details", {}),
        )
        raise

    log_with_context(
        logger,
        logging.INFO,
        "CopyObject complete",
        operation_id=execution_id,
        request_id=request_id,
        source_key=source_key,
        dest_key=dest_key,
        size=object_size,
    )

    return {
        "status": "SUCCESS",
        "method": method,
        "source_key": source_key,
        "dest_key": dest_key,
        "size": object_size,
        "etag": result.get("ETag", ""),
    }
