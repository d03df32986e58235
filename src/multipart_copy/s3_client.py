"""boto3 calls for objects and the multipart upload lifecycle."""

from typing import Any, Dict, Iterator, List, Sequence, Tuple

from botocore.exceptions import ClientError

from multipart_copy.exceptions import (
    AccessDeniedError,
    InvalidPartsError,
    NonRetryableError,
    NotFoundError,
    RetryableError,
)
from multipart_copy.logger import get_logger
from multipart_copy.partitioner import MAX_PARTS, ByteRange

logger = get_logger(__name__)

_ACCESS_DENIED_CODES = ("AccessDenied", "403")
_NOT_FOUND_CODES = ("404", "NoSuchKey", "NoSuchBucket", "NoSuchUpload", "NotFound")
_INVALID_REQUEST_CODES = (
    "400",
    "InvalidRequest",
    "InvalidArgument",
    "InvalidPart",
    "InvalidPartOrder",
    "EntityTooSmall",
    "InvalidRange",
)


def _classify_s3_error(e: ClientError, operation: str, **context) -> Exception:
    """Classify a botocore ClientError into our exception hierarchy."""
    error_code = str(e.response.get("Error", {}).get("Code", ""))
    message = f"S3 {operation} failed: {e}"
    details = {"error_code": error_code, "operation": operation, **context}

    if error_code in _ACCESS_DENIED_CODES:
        return AccessDeniedError(message, details=details)
    if error_code in _NOT_FOUND_CODES:
        return NotFoundError(message, details=details)
    if error_code in _INVALID_REQUEST_CODES:
        return NonRetryableError(message, details=details)
    return RetryableError(message, details=details)


def _isoformat(value) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value or "")


def head_object(s3_client, bucket: str, key: str) -> Dict[str, Any]:
    """Get object metadata."""
    try:
        response = s3_client.head_object(Bucket=bucket, Key=key)
    except ClientError as e:
        raise _classify_s3_error(e, "head_object", bucket=bucket, key=key) from e
    return {
        "ContentLength": response["ContentLength"],
        "ETag": response.get("ETag", ""),
        "LastModified": _isoformat(response.get("LastModified")),
    }


def copy_object(
    s3_client,
    source_bucket: str,
    source_key: str,
    dest_bucket: str,
    dest_key: str,
    kms_key_id: str = "",
) -> Dict[str, Any]:
    """Single-request server-side copy for objects up to 5 GiB."""
    logger.info(
        "Copying s3://%s/%s -> s3://%s/%s",
        source_bucket,
        source_key,
        dest_bucket,
        dest_key,
    )
    kwargs = {
        "CopySource": {"Bucket": source_bucket, "Key": source_key},
        "Bucket": dest_bucket,
        "Key": dest_key,
    }
    if kms_key_id:
        kwargs["ServerSideEncryption"] = "aws:kms"
        kwargs["SSEKMSKeyId"] = kms_key_id

    try:
        response = s3_client.copy_object(**kwargs)
    except ClientError as e:
        raise _classify_s3_error(
            e,
            "copy_object",
            dest_bucket=dest_bucket,
            dest_key=dest_key,
            source_bucket=source_bucket,
            source_key=source_key,
        ) from e
    result = response.get("CopyObjectResult", {})
    logger.info("Copy complete: s3://%s/%s", dest_bucket, dest_key)
    return {
        "ETag": result.get("ETag", ""),
        "LastModified": _isoformat(result.get("LastModified")),
    }


def put_object(
    s3_client, bucket: str, key: str, body: bytes, kms_key_id: str = ""
) -> Dict[str, Any]:
    """Store ``body`` as a whole object."""
    kwargs = {"Bucket": bucket, "Key": key, "Body": body}
    if kms_key_id:
        kwargs["ServerSideEncryption"] = "aws:kms"
        kwargs["SSEKMSKeyId"] = kms_key_id

    try:
        response = s3_client.put_object(**kwargs)
    except ClientError as e:
        raise _classify_s3_error(e, "put_object", bucket=bucket, key=key) from e
    return {"ETag": response.get("ETag", "")}


def get_object(s3_client, bucket: str, key: str) -> bytes:
    """Read a whole object into memory."""
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
        return response["Body"].read()
    except ClientError as e:
        raise _classify_s3_error(e, "get_object", bucket=bucket, key=key) from e


def delete_object(s3_client, bucket: str, key: str) -> None:
    """Delete an object. Deleting a missing key succeeds, as in S3."""
    try:
        s3_client.delete_object(Bucket=bucket, Key=key)
    except ClientError as e:
        raise _classify_s3_error(e, "delete_object", bucket=bucket, key=key) from e
    logger.info("Deleted s3://%s/%s", bucket, key)


def list_objects(s3_client, bucket: str, prefix: str = "") -> Iterator[Dict[str, Any]]:
    """List all objects in a bucket/prefix using pagination.

    Yields dicts with: Key, Size, LastModified, ETag.
    """
    logger.info("Listing objects in s3://%s/%s", bucket, prefix)
    paginator = s3_client.get_paginator("list_objects_v2")
    page_kwargs = {"Bucket": bucket}
    if prefix:
        page_kwargs["Prefix"] = prefix

    try:
        total_count = 0
        for page in paginator.paginate(**page_kwargs):
            for obj in page.get("Contents", []):
                total_count += 1
                yield {
                    "Key": obj["Key"],
                    "Size": obj["Size"],
                    "LastModified": _isoformat(obj.get("LastModified")),
                    "ETag": obj.get("ETag", ""),
                }
        logger.info("Listed %d objects in s3://%s/%s", total_count, bucket, prefix)
    except ClientError as e:
        raise _classify_s3_error(e, "list_objects_v2", bucket=bucket, prefix=prefix) from e


def create_multipart_upload(
    s3_client, bucket: str, key: str, kms_key_id: str = ""
) -> str:
    """Initiate a multipart upload and return its upload id."""
    kwargs = {"Bucket": bucket, "Key": key}
    if kms_key_id:
        kwargs["ServerSideEncryption"] = "aws:kms"
        kwargs["SSEKMSKeyId"] = kms_key_id

    try:
        response = s3_client.create_multipart_upload(**kwargs)
    except ClientError as e:
        raise _classify_s3_error(
            e, "create_multipart_upload", bucket=bucket, key=key
        ) from e
    upload_id = response["UploadId"]
    logger.info("Created multipart upload %s for s3://%s/%s", upload_id, bucket, key)
    return upload_id


def upload_part(
    s3_client,
    bucket: str,
    key: str,
    upload_id: str,
    part_number: int,
    body: bytes,
) -> Dict[str, Any]:
    """Upload ``body`` as one part of the upload."""
    try:
        response = s3_client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=part_number,
            Body=body,
        )
    except ClientError as e:
        raise _classify_s3_error(
            e,
            "upload_part",
            bucket=bucket,
            key=key,
            upload_id=upload_id,
            part_number=part_number,
        ) from e
    return {"ETag": response["ETag"]}


def upload_part_copy(
    s3_client,
    dest_bucket: str,
    dest_key: str,
    source_bucket: str,
    source_key: str,
    upload_id: str,
    part_number: int,
    byte_range: ByteRange,
) -> Dict[str, Any]:
    """Copy one byte range of the source into one part of the upload."""
    try:
        response = s3_client.upload_part_copy(
            Bucket=dest_bucket,
            Key=dest_key,
            UploadId=upload_id,
            PartNumber=part_number,
            CopySource={"Bucket": source_bucket, "Key": source_key},
            CopySourceRange=byte_range.header(),
        )
    except ClientError as e:
        raise _classify_s3_error(
            e,
            "upload_part_copy",
            dest_bucket=dest_bucket,
            dest_key=dest_key,
            upload_id=upload_id,
            part_number=part_number,
        ) from e
    result = response["CopyPartResult"]
    return {
        "ETag": result["ETag"],
        "LastModified": _isoformat(result.get("LastModified")),
    }


def list_parts(s3_client, bucket: str, key: str, upload_id: str) -> List[Dict[str, Any]]:
    """List every part uploaded so far, ascending by part number."""
    paginator = s3_client.get_paginator("list_parts")
    parts = []
    try:
        for page in paginator.paginate(Bucket=bucket, Key=key, UploadId=upload_id):
            for part in page.get("Parts", []):
                parts.append(
                    {
                        "PartNumber": part["PartNumber"],
                        "ETag": part["ETag"],
                        "Size": part["Size"],
                        "LastModified": _isoformat(part.get("LastModified")),
                    }
                )
    except ClientError as e:
        raise _classify_s3_error(
            e, "list_parts", bucket=bucket, key=key, upload_id=upload_id
        ) from e
    parts.sort(key=lambda p: p["PartNumber"])
    return parts


def validate_parts(parts: Sequence[Tuple[Any, Any]]) -> List[Tuple[int, str]]:
    """Normalize ``(part_number, etag)`` pairs and check their order.

    Part numbers given as numeric strings are converted to ints.
    """
    validated = []
    previous = 0
    for entry in parts:
        try:
            part_number, etag = entry
        except (TypeError, ValueError):
            raise InvalidPartsError(
                f"Expected (part_number, etag) pair, got {entry!r}",
                details={"entry": repr(entry)},
            ) from None
        if isinstance(part_number, str) and part_number.isdigit():
            part_number = int(part_number)
        if (
            isinstance(part_number, bool)
            or not isinstance(part_number, int)
            or not isinstance(etag, str)
        ):
            raise InvalidPartsError(
                f"Expected (int, str) part entry, got {entry!r}",
                details={"entry": repr(entry)},
            )
        if not 1 <= part_number <= MAX_PARTS:
            raise InvalidPartsError(
                f"Part number {part_number} outside 1..{MAX_PARTS}",
                details={"part_number": part_number},
            )
        if part_number <= previous:
            raise InvalidPartsError(
                f"Part numbers must be strictly ascending: {part_number} after {previous}",
                details={"part_number": part_number, "previous": previous},
            )
        validated.append((part_number, etag))
        previous = part_number
    if not validated:
        raise InvalidPartsError("At least one part is required to complete an upload")
    return validated


def complete_multipart_upload(
    s3_client,
    bucket: str,
    key: str,
    upload_id: str,
    parts: Sequence[Tuple[int, str]],
) -> Dict[str, Any]:
    """Stitch the uploaded parts into the final object."""
    validated = validate_parts(parts)
    try:
        response = s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={
                "Parts": [
                    {"PartNumber": part_number, "ETag": etag}
                    for part_number, etag in validated
                ]
            },
        )
    except ClientError as e:
        raise _classify_s3_error(
            e, "complete_multipart_upload", bucket=bucket, key=key, upload_id=upload_id
        ) from e
    logger.info(
        "Completed multipart upload %s (%d parts) for s3://%s/%s",
        upload_id,
        len(validated),
        bucket,
        key,
    )
    return {
        "Bucket": response.get("Bucket", bucket),
        "Key": response.get("Key", key),
        "ETag": response.get("ETag", ""),
        "Location": response.get("Location", ""),
        "UploadId": upload_id,
    }


def abort_multipart_upload(s3_client, bucket: str, key: str, upload_id: str) -> None:
    """Abort the upload and discard any parts copied into it."""
    try:
        s3_client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
    except ClientError as e:
        raise _classify_s3_error(
            e, "abort_multipart_upload", bucket=bucket, key=key, upload_id=upload_id
        ) from e
    logger.info("Aborted multipart upload %s for s3://%s/%s", upload_id, bucket, key)
