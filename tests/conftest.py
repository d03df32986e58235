"""Shared fixtures for multipart copy tests."""

import os
import sys
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

# Add package sources to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from multipart_copy.sandbox import InMemoryBackend  # noqa: E402

MIB = 1024 * 1024


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    """Set AWS and copy environment variables for testing."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.delenv("S3_ENDPOINT_URL", raising=False)

    monkeypatch.setenv("SOURCE_BUCKET", "source-bucket")
    monkeypatch.setenv("DESTINATION_BUCKET", "destination-bucket")
    monkeypatch.setenv("SOURCE_PREFIX", "data/")
    monkeypatch.setenv("DESTINATION_PREFIX", "copied/")
    monkeypatch.setenv("MULTIPART_CHUNK_SIZE_BYTES", str(5 * MIB))
    monkeypatch.setenv("MAX_CONCURRENCY", "4")
    monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    for name in (
        "DESTINATION_KMS_KEY_ID",
        "MULTIPART_THRESHOLD_BYTES",
        "ABORT_ON_FAILURE",
        "PART_TIMEOUT_SECONDS",
        "CONNECT_TIMEOUT_SECONDS",
        "RETRY_BASE_DELAY",
        "RETRY_MAX_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    ctx = MagicMock()
    ctx.aws_request_id = "test-request-id-12345"
    ctx.function_name = "test-function"
    return ctx


@pytest.fixture
def s3_client():
    """Create a moto-mocked S3 client with source and destination buckets."""
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket="source-bucket")
        client.create_bucket(Bucket="destination-bucket")
        yield client


@pytest.fixture
def large_body():
    """12 MiB of non-repeating content: three 5 MiB chunks, the last short."""
    block = bytes(range(256)) * 4096  # 1 MiB
    return b"".join(bytes([i]) + block[1:] for i in range(12))


@pytest.fixture
def memory_backend(large_body):
    """In-memory backend seeded with a 12 MiB source object."""
    backend = InMemoryBackend()
    backend.put_object("source-bucket", "data/large.bin", large_body)
    backend.calls.clear()
    return backend
