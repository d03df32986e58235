"""Exception hierarchy for server-side object copy operations."""


class CopyError(Exception):
    """Base exception for all copy operations."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RetryableError(CopyError):
    """Errors that should be retried (throttling, transient failures)."""
    pass


class NonRetryableError(CopyError):
    """Errors that should NOT be retried (access denied, invalid config)."""
    pass


class AccessDeniedError(NonRetryableError):
    """Access to the source or destination was denied."""
    pass


class NotFoundError(NonRetryableError):
    """Bucket, object or multipart upload does not exist."""
    pass


class ConfigurationError(NonRetryableError):
    """Copy parameters are invalid; raised before any network call."""
    pass


class ObjectTooSmallError(ConfigurationError):
    """Object is below the minimum multipart part size; use a single copy."""
    pass


class ObjectTooLargeError(ConfigurationError):
    """Object exceeds maximum supported size."""
    pass


class PartLimitExceededError(ConfigurationError):
    """Chunk size would split the object into too many parts."""
    pass


class StartIndexOutOfRangeError(ConfigurationError):
    """Start index points outside the object."""
    pass


class InvalidPartsError(ConfigurationError):
    """Part list passed to complete is malformed or out of order."""
    pass


class PartCopyError(CopyError):
    """A single part failed to copy.

    The part number travels with the error so failures that complete out of
    order can still be reported in part order.
    """

    def __init__(
        self,
        message: str,
        part_number: int,
        byte_range=None,
        cause: BaseException | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details=details)
        self.part_number = part_number
        self.byte_range = byte_range
        self.cause = cause


class TaskFaultError(PartCopyError):
    """A part copy worker terminated abnormally instead of reporting."""
    pass


class MultipartCopyError(CopyError):
    """One or more parts failed; ``errors`` is ordered by part number."""

    def __init__(self, message: str, errors: list, details: dict | None = None):
        super().__init__(message, details=details)
        self.errors = list(errors)

    @property
    def part_numbers(self) -> list:
        return [e.part_number for e in self.errors]
