# ems/core/exceptions.py


class EMSError(Exception):
    """Base class for errors raised by the employee management core"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(EMSError):
    """Malformed or out-of-range input. Never retried."""


class NotFoundError(EMSError):
    """A referenced record does not exist."""


class ConflictError(EMSError):
    """Duplicate open attendance record or duplicate unique field."""


class UnsupportedFormatError(EMSError):
    """The report pipeline has no generator for the requested format."""


class StoreError(EMSError):
    """Connectivity or constraint failure in the database layer."""
