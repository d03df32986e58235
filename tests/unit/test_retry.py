"""Tests for exponential backoff with jitter and the retry policy."""

from unittest.mock import patch

import pytest

from multipart_copy.config import CopyConfig
from multipart_copy.exceptions import (
    MultipartCopyError,
    NonRetryableError,
    NotFoundError,
    RetryableError,
)
from multipart_copy.retry import RetryPolicy, exponential_backoff_with_jitter


class TestExponentialBackoffWithJitter:
    def test_success_on_first_attempt(self):
        @exponential_backoff_with_jitter(max_attempts=3)
        def succeed():
            return "ok"

        assert succeed() == "ok"

    @patch("multipart_copy.retry.time.sleep")
    def test_retries_on_retryable_error(self, mock_sleep):
        call_count = 0

        @exponential_backoff_with_jitter(max_attempts=3, base_delay=1.0)
        def fail_twice():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise RetryableError("transient")
            return "ok"

        assert fail_twice() == "ok"
        assert call_count == 3
        assert mock_sleep.call_count == 2

    @patch("multipart_copy.retry.time.sleep")
    def test_raises_after_max_attempts(self, mock_sleep):
        @exponential_backoff_with_jitter(max_attempts=3, base_delay=1.0)
        def always_fail():
            raise RetryableError("always fails")

        with pytest.raises(RetryableError, match="always fails"):
            always_fail()
        assert mock_sleep.call_count == 2

    def test_non_retryable_raises_immediately(self):
        call_count = 0

        @exponential_backoff_with_jitter(
            max_attempts=5, retryable_exceptions=(Exception,)
        )
        def missing():
            nonlocal call_count
            call_count += 1
            raise NotFoundError("no such key")

        with pytest.raises(NonRetryableError, match="no such key"):
            missing()
        assert call_count == 1

    def test_aggregate_copy_failure_is_not_retried(self):
        call_count = 0

        @exponential_backoff_with_jitter(max_attempts=5)
        def copy():
            nonlocal call_count
            call_count += 1
            raise MultipartCopyError("parts failed", errors=[])

        with pytest.raises(MultipartCopyError):
            copy()
        assert call_count == 1

    @patch("multipart_copy.retry.time.sleep")
    @patch("multipart_copy.retry.random.uniform")
    def test_delay_is_capped(self, mock_uniform, mock_sleep):
        mock_uniform.return_value = 0.5

        @exponential_backoff_with_jitter(max_attempts=4, base_delay=4.0, max_delay=10.0)
        def always_fail():
            raise RetryableError("retry")

        with pytest.raises(RetryableError):
            always_fail()
        bounds = [c.args[1] for c in mock_uniform.call_args_list]
        assert bounds == [4.0, 8.0, 10.0]

    def test_zero_attempts_still_calls_once(self):
        @exponential_backoff_with_jitter(max_attempts=0)
        def succeed():
            return "ok"

        assert succeed() == "ok"


class TestRetryPolicy:
    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("MAX_RETRY_ATTEMPTS", "7")
        monkeypatch.setenv("RETRY_BASE_DELAY", "0.5")
        monkeypatch.setenv("RETRY_MAX_DELAY", "30")
        policy = RetryPolicy.from_config(CopyConfig.from_env())
        assert policy == RetryPolicy(max_attempts=7, base_delay=0.5, max_delay=30.0)

    @patch("multipart_copy.retry.time.sleep")
    def test_call_retries_and_passes_arguments(self, mock_sleep):
        calls = []

        def flaky(a, b=None):
            calls.append((a, b))
            if len(calls) == 1:
                raise RetryableError("once")
            return a + b

        assert RetryPolicy(max_attempts=2).call(flaky, 1, b=2) == 3
        assert calls == [(1, 2), (1, 2)]
        assert mock_sleep.call_count == 1
