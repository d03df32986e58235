"""Tests for configuration loading."""

import pytest

from multipart_copy.config import CopyConfig


class TestCopyConfig:
    def test_from_env_loads_all_values(self, monkeypatch):
        monkeypatch.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
        monkeypatch.setenv("ABORT_ON_FAILURE", "yes")
        monkeypatch.setenv("PART_TIMEOUT_SECONDS", "300")

        config = CopyConfig.from_env()
        assert config.region == "us-east-1"
        assert config.endpoint_url == "http://localhost:9000"
        assert config.source_bucket == "source-bucket"
        assert config.destination_bucket == "destination-bucket"
        assert config.source_prefix == "data/"
        assert config.destination_prefix == "copied/"
        assert config.multipart_chunk_size_bytes == 5 * 1024 * 1024
        assert config.max_concurrency == 4
        assert config.abort_on_failure is True
        assert config.part_timeout_seconds == 300.0
        assert config.max_retry_attempts == 1

    def test_aws_region_wins_over_default_region(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "ap-southeast-2")
        assert CopyConfig.from_env().region == "ap-southeast-2"

    def test_defaults(self, monkeypatch):
        for name in (
            "AWS_DEFAULT_REGION",
            "SOURCE_BUCKET",
            "DESTINATION_BUCKET",
            "SOURCE_PREFIX",
            "DESTINATION_PREFIX",
            "MULTIPART_CHUNK_SIZE_BYTES",
            "MAX_CONCURRENCY",
            "MAX_RETRY_ATTEMPTS",
        ):
            monkeypatch.delenv(name, raising=False)

        config = CopyConfig.from_env()
        assert config.region == ""
        assert config.endpoint_url == ""
        assert config.source_bucket == ""
        assert config.multipart_threshold_bytes == 5 * 1024 * 1024 * 1024
        assert config.multipart_chunk_size_bytes == 64 * 1024 * 1024
        assert config.max_concurrency == 0
        assert config.abort_on_failure is False
        assert config.part_timeout_seconds == 60.0
        assert config.connect_timeout_seconds == 10.0
        assert config.max_retry_attempts == 5
        assert config.retry_base_delay == 1.0
        assert config.retry_max_delay == 60.0

    @pytest.mark.parametrize("value", ["false", "0", "no", "off"])
    def test_abort_on_failure_falsy(self, monkeypatch, value):
        monkeypatch.setenv("ABORT_ON_FAILURE", value)
        assert CopyConfig.from_env().abort_on_failure is False

    def test_frozen_dataclass(self):
        config = CopyConfig.from_env()
        with pytest.raises(AttributeError):
            config.source_bucket = "modified"
