"""Tests for the exception hierarchy."""

from multipart_copy.exceptions import (
    AccessDeniedError,
    ConfigurationError,
    CopyError,
    InvalidPartsError,
    MultipartCopyError,
    NonRetryableError,
    NotFoundError,
    ObjectTooLargeError,
    ObjectTooSmallError,
    PartCopyError,
    PartLimitExceededError,
    RetryableError,
    StartIndexOutOfRangeError,
    TaskFaultError,
)
from multipart_copy.partitioner import ByteRange


class TestExceptionHierarchy:
    def test_copy_error_is_base(self):
        err = CopyError("test")
        assert isinstance(err, Exception)
        assert str(err) == "test"
        assert err.details == {}

    def test_copy_error_with_details(self):
        err = CopyError("test", details={"bucket": "b"})
        assert err.details == {"bucket": "b"}

    def test_retryable_and_non_retryable_are_copy_errors(self):
        assert isinstance(RetryableError("throttled"), CopyError)
        assert isinstance(NonRetryableError("bad config"), CopyError)

    def test_access_denied_and_not_found_are_non_retryable(self):
        assert isinstance(AccessDeniedError("forbidden"), NonRetryableError)
        assert isinstance(NotFoundError("missing"), NonRetryableError)

    def test_configuration_errors_are_non_retryable(self):
        for exc in (
            ObjectTooSmallError,
            ObjectTooLargeError,
            PartLimitExceededError,
            StartIndexOutOfRangeError,
            InvalidPartsError,
        ):
            err = exc("bad")
            assert isinstance(err, ConfigurationError)
            assert isinstance(err, NonRetryableError)


class TestPartErrors:
    def test_part_copy_error_carries_part_context(self):
        cause = RetryableError("SlowDown")
        err = PartCopyError(
            "part 3 failed",
            part_number=3,
            byte_range=ByteRange(10, 19),
            cause=cause,
            details={"upload_id": "u1"},
        )
        assert err.part_number == 3
        assert err.byte_range == (10, 19)
        assert err.cause is cause
        assert err.details == {"upload_id": "u1"}

    def test_task_fault_is_part_copy_error(self):
        err = TaskFaultError("Part copy task did not complete", part_number=1)
        assert isinstance(err, PartCopyError)
        assert err.cause is None

    def test_multipart_copy_error_lists_part_numbers(self):
        errors = [PartCopyError("a", part_number=2), PartCopyError("b", part_number=5)]
        err = MultipartCopyError("2 parts failed", errors=errors, details={"upload_id": "u1"})
        assert err.errors == errors
        assert err.part_numbers == [2, 5]
        assert not isinstance(err, RetryableError)
