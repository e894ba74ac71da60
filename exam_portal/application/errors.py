class ExamPortalError(Exception):
    """Base class for errors raised by the exam core."""


class NotFoundError(ExamPortalError):
    """Referenced exam or attempt does not exist."""


class InvalidStateError(ExamPortalError):
    """Attempt status forbids the requested operation."""


class StoreFailure(ExamPortalError):
    """Persistence I/O failed; the operation was rolled back and may be retried."""
