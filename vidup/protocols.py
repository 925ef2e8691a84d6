"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator only knows these ports; HTTP, disk and platform specifics
live in the adapters under `vidup.services`.
"""
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Protocol, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ChunkDescriptor, FinalizeResult, HistoryRecord, StoredRecord, UploadTask
    from .orchestrator.cancellation import CancellationToken


@runtime_checkable
class IFileRef(Protocol):
    """Read-only handle to the source bytes."""

    name: str
    size: int
    mime_type: str

    async def read_range(self, start: int, end: int) -> bytes:
        """Return bytes [start, end)."""
        ...


@runtime_checkable
class ITransport(Protocol):
    """Remote chunk-accepting service."""

    async def upload_chunk(
        self,
        file_ref: IFileRef,
        chunk: "ChunkDescriptor",
        total_chunks: int,
        upload_name: str,
        mime_type: str,
        token: Optional["CancellationToken"] = None,
    ) -> Any:
        """
        Upload one chunk.

        Raises TransportError on a non-success response and
        UploadCancelledError when `token` fires while in flight.
        """
        ...

    async def finalize(
        self,
        file_ref: IFileRef,
        total_chunks: int,
        upload_name: str,
        mime_type: str,
    ) -> "FinalizeResult":
        """Assemble uploaded chunks server-side and return the file URL."""
        ...


class IUploadLifecycle(ABC):
    """Hooks the host attaches to the uploading phase (wake locks and such)."""

    @abstractmethod
    async def on_uploading_start(self, task: "UploadTask") -> None:
        pass

    @abstractmethod
    async def on_uploading_end(self, task: "UploadTask") -> None:
        pass


class NullLifecycle(IUploadLifecycle):
    """Lifecycle that does nothing."""

    async def on_uploading_start(self, task: "UploadTask") -> None:
        return None

    async def on_uploading_end(self, task: "UploadTask") -> None:
        return None


class IHistoryStore(ABC):
    """Interface for upload history storage (Repository Pattern)."""

    @abstractmethod
    async def append(self, record: "HistoryRecord") -> "StoredRecord":
        """Store a record, assigning its id and upload timestamp."""
        pass

    @abstractmethod
    async def list_all(self) -> List["StoredRecord"]:
        """All records, newest first."""
        pass

    @abstractmethod
    async def get(self, record_id: int) -> "StoredRecord":
        """Fetch one record. Raises NotFoundError when missing."""
        pass

    @abstractmethod
    async def remove(self, record_id: int) -> None:
        """Delete one record. Raises NotFoundError when missing."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every record."""
        pass
