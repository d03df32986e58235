"""Storage backend interface and its S3 implementation."""

import os
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import boto3
from botocore.config import Config

from multipart_copy import s3_client
from multipart_copy.config import CopyConfig
from multipart_copy.partitioner import ByteRange
from multipart_copy.retry import RetryPolicy

# botocore's default connection pool size
_DEFAULT_POOL_CONNECTIONS = 10


def _list_all_objects(client, bucket: str, prefix: str) -> List[Dict[str, Any]]:
    return list(s3_client.list_objects(client, bucket, prefix))


class MultipartBackend(Protocol):
    """Object and multipart operations the copy workflow runs against a store.

    ``S3Backend`` talks to S3 or an S3-compatible endpoint;
    ``multipart_copy.sandbox.InMemoryBackend`` keeps everything in memory.
    """

    def head_object(self, bucket: str, key: str) -> Dict[str, Any]:
        ...

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
        kms_key_id: str = "",
    ) -> Dict[str, Any]:
        ...

    def put_object(
        self, bucket: str, key: str, body: bytes, kms_key_id: str = ""
    ) -> Dict[str, Any]:
        ...

    def get_object(self, bucket: str, key: str) -> bytes:
        ...

    def delete_object(self, bucket: str, key: str) -> None:
        ...

    def list_objects(self, bucket: str, prefix: str = "") -> List[Dict[str, Any]]:
        ...

    def create_multipart_upload(
        self, bucket: str, key: str, kms_key_id: str = ""
    ) -> str:
        ...

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Dict[str, Any]:
        ...

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
        ...

    def list_parts(self, bucket: str, key: str, upload_id: str) -> List[Dict[str, Any]]:
        ...

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[Tuple[int, str]],
    ) -> Dict[str, Any]:
        ...

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        ...


def create_s3_client(config: CopyConfig):
    """Create a boto3 S3 client tuned for concurrent part copies.

    Retries are disabled in botocore because ``RetryPolicy`` owns them.
    """
    pool_size = max(
        _DEFAULT_POOL_CONNECTIONS, config.max_concurrency or os.cpu_count() or 1
    )
    client_config = Config(
        connect_timeout=config.connect_timeout_seconds,
        read_timeout=config.part_timeout_seconds,
        max_pool_connections=pool_size,
        retries={"mode": "standard", "total_max_attempts": 1},
    )
    kwargs = {"service_name": "s3", "config": client_config}
    if config.region:
        kwargs["region_name"] = config.region
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    return boto3.client(**kwargs)


class S3Backend:
    """MultipartBackend over a boto3 S3 client.

    Every call runs under the retry policy; callers above this layer never
    retry on their own.
    """

    def __init__(self, client, retry_policy: Optional[RetryPolicy] = None):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_config(cls, config: CopyConfig) -> "S3Backend":
        return cls(create_s3_client(config), RetryPolicy.from_config(config))

    def head_object(self, bucket: str, key: str) -> Dict[str, Any]:
        return self.retry_policy.call(s3_client.head_object, self.client, bucket, key)

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
        kms_key_id: str = "",
    ) -> Dict[str, Any]:
        return self.retry_policy.call(
            s3_client.copy_object,
            self.client,
            source_bucket,
            source_key,
            dest_bucket,
            dest_key,
            kms_key_id=kms_key_id,
        )

    def put_object(
        self, bucket: str, key: str, body: bytes, kms_key_id: str = ""
    ) -> Dict[str, Any]:
        return self.retry_policy.call(
            s3_client.put_object, self.client, bucket, key, body, kms_key_id=kms_key_id
        )

    def get_object(self, bucket: str, key: str) -> bytes:
        return self.retry_policy.call(s3_client.get_object, self.client, bucket, key)

    def delete_object(self, bucket: str, key: str) -> None:
        self.retry_policy.call(s3_client.delete_object, self.client, bucket, key)

    def list_objects(self, bucket: str, prefix: str = "") -> List[Dict[str, Any]]:
        """List every object under ``prefix``; a failed page restarts the listing."""
        return self.retry_policy.call(_list_all_objects, self.client, bucket, prefix)

    def create_multipart_upload(
        self, bucket: str, key: str, kms_key_id: str = ""
    ) -> str:
        return self.retry_policy.call(
            s3_client.create_multipart_upload,
            self.client,
            bucket,
            key,
            kms_key_id=kms_key_id,
        )

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        body: bytes,
    ) -> Dict[str, Any]:
        return self.retry_policy.call(
            s3_client.upload_part,
            self.client,
            bucket,
            key,
            upload_id,
            part_number,
            body,
        )

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
        return self.retry_policy.call(
            s3_client.upload_part_copy,
            self.client,
            dest_bucket,
            dest_key,
            source_bucket,
            source_key,
            upload_id,
            part_number,
            byte_range,
        )

    def list_parts(self, bucket: str, key: str, upload_id: str) -> List[Dict[str, Any]]:
        return self.retry_policy.call(
            s3_client.list_parts, self.client, bucket, key, upload_id
        )

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[Tuple[int, str]],
    ) -> Dict[str, Any]:
        return self.retry_policy.call(
            s3_client.complete_multipart_upload,
            self.client,
            bucket,
            key,
            upload_id,
            parts,
        )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        self.retry_policy.call(
            s3_client.abort_multipart_upload, self.client, bucket, key, upload_id
        )
