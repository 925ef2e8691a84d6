"""Error taxonomy for vidup."""
from typing import Optional


class VidupError(Exception):
    """Base class for all vidup errors."""


class TransportError(VidupError):
    """A chunk upload or finalize call did not succeed."""

    def __init__(self, message: str, chunk_index: Optional[int] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.chunk_index = chunk_index
        self.status_code = status_code


class UploadCancelledError(VidupError):
    """The operation was aborted through a cancellation token."""

    def __init__(self, message: str = "Upload cancelled"):
        super().__init__(message)


class InvalidStateError(VidupError):
    """An upload task was asked to do something its status does not allow."""


class StorageError(VidupError):
    """A history store operation failed."""


class NotFoundError(StorageError):
    """No history record exists with the requested id."""

    def __init__(self, record_id: int):
        super().__init__(f"History record not found: {record_id}")
        self.record_id = record_id


class ConfigError(VidupError):
    """Configuration could not be parsed."""
