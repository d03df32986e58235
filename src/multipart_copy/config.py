"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass

# 64 MiB
DEFAULT_CHUNK_SIZE = 64 * 1024 * 1024

# 5 GiB, the largest object S3 copies in a single request
DEFAULT_MULTIPART_THRESHOLD = 5 * 1024 * 1024 * 1024

_TRUTHY = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class CopyConfig:
    """Copy configuration from environment variables."""

    # Endpoint
    region: str = ""
    endpoint_url: str = ""

    # Default copy coordinates for the handler
    source_bucket: str = ""
    destination_bucket: str = ""
    source_prefix: str = ""
    destination_prefix: str = ""

    destination_kms_key_id: str = ""

    # Multipart settings
    multipart_threshold_bytes: int = DEFAULT_MULTIPART_THRESHOLD
    multipart_chunk_size_bytes: int = DEFAULT_CHUNK_SIZE
    max_concurrency: int = 0  # 0 means one worker per host core
    abort_on_failure: bool = False

    # Transport settings
    part_timeout_seconds: float = 60.0
    connect_timeout_seconds: float = 10.0
    max_retry_attempts: int = 5
    retry_base_delay: float = 1.0
    retry_max_delay: float = 60.0

    @classmethod
    def from_env(cls) -> "CopyConfig":
        """Load configuration from environment variables."""
        return cls(
            region=os.environ.get(
                "AWS_REGION", os.environ.get("AWS_DEFAULT_REGION", "")
            ),
            endpoint_url=os.environ.get("S3_ENDPOINT_URL", ""),
            source_bucket=os.environ.get("SOURCE_BUCKET", ""),
            destination_bucket=os.environ.get("DESTINATION_BUCKET", ""),
            source_prefix=os.environ.get("SOURCE_PREFIX", ""),
            destination_prefix=os.environ.get("DESTINATION_PREFIX", ""),
            destination_kms_key_id=os.environ.get("DESTINATION_KMS_KEY_ID", ""),
            multipart_threshold_bytes=int(
                os.environ.get(
                    "MULTIPART_THRESHOLD_BYTES", str(DEFAULT_MULTIPART_THRESHOLD)
                )
            ),
            multipart_chunk_size_bytes=int(
                os.environ.get("MULTIPART_CHUNK_SIZE_BYTES", str(DEFAULT_CHUNK_SIZE))
            ),
            max_concurrency=int(os.environ.get("MAX_CONCURRENCY", "0")),
            abort_on_failure=_env_bool("ABORT_ON_FAILURE", False),
            part_timeout_seconds=float(
                os.environ.get("PART_TIMEOUT_SECONDS", "60.0")
            ),
            connect_timeout_seconds=float(
                os.environ.get("CONNECT_TIMEOUT_SECONDS", "10.0")
            ),
            max_retry_attempts=int(os.environ.get("MAX_RETRY_ATTEMPTS", "5")),
            retry_base_delay=float(os.environ.get("RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.environ.get("RETRY_MAX_DELAY", "60.0")),
        )
