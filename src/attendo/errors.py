class AttendoError(Exception):
    """Base exception for attendance tracking errors."""


class ValidationError(AttendoError):
    """Raised when input is rejected before any state is changed."""


class NotFoundError(ValidationError):
    """Raised when an operation names a subject that does not exist."""


class SnapshotFormatError(AttendoError):
    """Raised when a backup snapshot does not have the expected shape."""
