"""In-memory MultipartBackend for tests and local runs.

Objects and uploads live in dictionaries guarded by a single lock, so the
backend can be shared by concurrent part-copy workers. Multipart rules match
S3: part numbers 1..10000, every part but the last at least 5 MiB, and
completion only with strictly ascending parts whose ETags match.
"""

import hashlib
import itertools
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from multipart_copy.exceptions import (
    InvalidPartsError,
    NonRetryableError,
    NotFoundError,
)
from multipart_copy.partitioner import MAX_PARTS, MIN_PART_SIZE, ByteRange
from multipart_copy.s3_client import validate_parts


def _etag(data: bytes) -> str:
    return f'"{hashlib.md5(data).hexdigest()}"'


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryBackend:
    """Thread-safe in-memory object store.

    ``fail_parts`` maps a part number to the exception ``upload_part_copy``
    raises for it, which lets tests script partial failures.
    """

    def __init__(self, fail_parts: Optional[Dict[int, Exception]] = None):
        self.objects: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.uploads: Dict[str, Dict[str, Any]] = {}
        self.fail_parts = dict(fail_parts or {})
        self.calls: List[Tuple[str, tuple]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, args))

    def _object(self, bucket: str, key: str) -> Dict[str, Any]:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise NotFoundError(
                f"Object s3://{bucket}/{key} not found",
                details={"bucket": bucket, "key": key},
            ) from None

    def _upload(self, bucket: str, key: str, upload_id: str) -> Dict[str, Any]:
        upload = self.uploads.get(upload_id)
        if upload is None or (upload["Bucket"], upload["Key"]) != (bucket, key):
            raise NotFoundError(
                f"Multipart upload {upload_id} not found for s3://{bucket}/{key}",
                details={"bucket": bucket, "key": key, "upload_id": upload_id},
            )
        return upload

    def _check_part_number(self, part_number: int) -> None:
        if not 1 <= part_number <= MAX_PARTS:
            raise NonRetryableError(
                f"Part number {part_number} outside 1..{MAX_PARTS}",
                details={"part_number": part_number},
            )

    def operations(self) -> List[str]:
        """Names of the operations called so far, in call order."""
        with self._lock:
            return [name for name, _ in self.calls]

    def head_object(self, bucket: str, key: str) -> Dict[str, Any]:
        with self._lock:
            self._record("head_object", bucket, key)
            entry = self._object(bucket, key)
            return {
                "ContentLength": len(entry["Body"]),
                "ETag": entry["ETag"],
                "LastModified": entry["LastModified"],
            }

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
        kms_key_id: str = "",
    ) -> Dict[str, Any]:
        with self._lock:
            self._record("copy_object", source_bucket, source_key, dest_bucket, dest_key)
            body = self._object(source_bucket, source_key)["Body"]
            entry = {"Body": body, "ETag": _etag(body), "LastModified": _now()}
            self.objects[(dest_bucket, dest_key)] = entry
            return {"ETag": entry["ETag"], "LastModified": entry["LastModified"]}

    def put_object(
        self, bucket: str, key: str, body: bytes, kms_key_id: str = ""
    ) -> Dict[str, Any]:
        with self._lock:
            self._record("put_object", bucket, key)
            entry = {"Body": bytes(body), "ETag": _etag(body), "LastModified": _now()}
            self.objects[(bucket, key)] = entry
            return {"ETag": entry["ETag"]}

    def get_object(self, bucket: str, key: str) -> bytes:
        with self._lock:
            self._record("get_object", bucket, key)
            return self._object(bucket, key)["Body"]

    def delete_object(self, bucket: str, key: str) -> None:
        with self._lock:
            self._record("delete_object", bucket, key)
            self.objects.pop((bucket, key), None)

    def list_objects(self, bucket: str, prefix: str = "") -> List[Dict[str, Any]]:
        with self._lock:
            self._record("list_objects", bucket, prefix)
            return [
                {
                    "Key": key,
                    "Size": len(entry["Body"]),
                    "LastModified": entry["LastModified"],
                    "ETag": entry["ETag"],
                }
                for (entry_bucket, key), entry in sorted(self.objects.items())
                if entry_bucket == bucket and key.startswith(prefix)
            ]

    def create_multipart_upload(
        self, bucket: str, key: str, kms_key_id: str = ""
    ) -> str:
        with self._lock:
            self._record("create_multipart_upload", bucket, key)
            upload_id = f"upload-{next(self._ids)}"
            self.uploads[upload_id] = {"Bucket": bucket, "Key": key, "Parts": {}}
            return upload_id

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Dict[str, Any]:
        with self._lock:
            self._record("upload_part", upload_id, part_number, len(body))
            upload = self._upload(bucket, key, upload_id)
            self._check_part_number(part_number)
            part = {"Body": bytes(body), "ETag": _etag(body), "LastModified": _now()}
            upload["Parts"][part_number] = part
            return {"ETag": part["ETag"]}

    def upload_part_copy(
        self,
        dest_bucket: str,
        dest_key: str,
        source_bucket: str,
        source_key: str,
        upload_id: str,
        part_number: int,
        byte_range: ByteRange,
    ) -> Dict[str, Any]:
        with self._lock:
            self._record("upload_part_copy", upload_id, part_number, tuple(byte_range))
            failure = self.fail_parts.get(part_number)
            if failure is not None:
                raise failure
            upload = self._upload(dest_bucket, dest_key, upload_id)
            self._check_part_number(part_number)
            body = self._object(source_bucket, source_key)["Body"]
            start, end = byte_range
            if start < 0 or end < start or end >= len(body):
                raise NonRetryableError(
                    f"Range bytes={start}-{end} is invalid for {len(body)} byte object",
                    details={"part_number": part_number, "byte_range": (start, end)},
                )
            data = body[start:end + 1]
            part = {"Body": data, "ETag": _etag(data), "LastModified": _now()}
            upload["Parts"][part_number] = part
            return {"ETag": part["ETag"], "LastModified": part["LastModified"]}

    def list_parts(self, bucket: str, key: str, upload_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            self._record("list_parts", bucket, key, upload_id)
            upload = self._upload(bucket, key, upload_id)
            return [
                {
                    "PartNumber": number,
                    "ETag": part["ETag"],
                    "Size": len(part["Body"]),
                    "LastModified": part["LastModified"],
                }
                for number, part in sorted(upload["Parts"].items())
            ]

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[Tuple[int, str]],
    ) -> Dict[str, Any]:
        validated = validate_parts(parts)
        with self._lock:
            self._record("complete_multipart_upload", bucket, key, upload_id, tuple(validated))
            upload = self._upload(bucket, key, upload_id)
            chunks = []
            for index, (part_number, etag) in enumerate(validated):
                part = upload["Parts"].get(part_number)
                if part is None or part["ETag"] != etag:
                    raise InvalidPartsError(
                        f"Part {part_number} was not uploaded with ETag {etag}",
                        details={"upload_id": upload_id, "part_number": part_number},
                    )
                is_last = index == len(validated) - 1
                if not is_last and len(part["Body"]) < MIN_PART_SIZE:
                    raise NonRetryableError(
                        f"Part {part_number} is smaller than {MIN_PART_SIZE} bytes",
                        details={"upload_id": upload_id, "part_number": part_number},
                    )
                chunks.append(part)

            body = b"".join(part["Body"] for part in chunks)
            digest = hashlib.md5(
                b"".join(bytes.fromhex(part["ETag"].strip('"')) for part in chunks)
            ).hexdigest()
            etag = f'"{digest}-{len(chunks)}"'
            self.objects[(bucket, key)] = {
                "Body": body,
                "ETag": etag,
                "LastModified": _now(),
            }
            del self.uploads[upload_id]
            return {
                "Bucket": bucket,
                "Key": key,
                "ETag": etag,
                "Location": f"memory://{bucket}/{key}",
                "UploadId": upload_id,
            }

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        with self._lock:
            self._record("abort_multipart_upload", bucket, key, upload_id)
            self._upload(bucket, key, upload_id)
            del self.uploads[upload_id]

