"""
vidup - chunked video upload coordinator with a local upload history.

Splits a file into fixed-size chunks, uploads them in sequential batches of
bounded parallelism, finalizes the file server-side and hands back a
terminal task the caller can record in history.

Usage:
    from vidup import (
        UploadOrchestrator, UploadTask, HTTPChunkTransport, LocalFile,
        JsonHistoryStore, RecordHistoryUseCase,
    )

    orchestrator = UploadOrchestrator()
    async with HTTPChunkTransport(api_url) as transport:
        task = UploadTask(file_ref=LocalFile("clip.mp4"), platform="iOS")
        await orchestrator.run(task, transport, concurrency_limit=3)

    if task.status is TaskStatus.SUCCEEDED:
        outcome = await RecordHistoryUseCase(JsonHistoryStore(path)).execute(task)

    # Several files, one after another, with a shared cancel switch
    coordinator = BatchCoordinator(orchestrator, transport, tasks)
    await coordinator.run()
"""
from .errors import (
    ConfigError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    TransportError,
    UploadCancelledError,
    VidupError,
)
from .models import (
    ChunkDescriptor,
    FinalizeResult,
    HistoryRecord,
    StoredRecord,
    TaskSnapshot,
    TaskStatus,
    UploadConfig,
    UploadTask,
)
from .orchestrator import (
    BatchCoordinator,
    BatchCounts,
    CancellationToken,
    UploadOrchestrator,
    plan_chunks,
)
from .protocols import IFileRef, IHistoryStore, ITransport, IUploadLifecycle
from .services import (
    HTTPChunkTransport,
    JsonHistoryStore,
    LocalFile,
    MemoryFile,
    MemoryHistoryStore,
)
from .use_cases import HistoryOutcome, RecordHistoryUseCase

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "BatchCoordinator",
    "BatchCounts",
    "CancellationToken",
    "plan_chunks",
    # Models
    "ChunkDescriptor",
    "FinalizeResult",
    "HistoryRecord",
    "StoredRecord",
    "TaskSnapshot",
    "TaskStatus",
    "UploadConfig",
    "UploadTask",
    # Ports
    "IFileRef",
    "IHistoryStore",
    "ITransport",
    "IUploadLifecycle",
    # Services
    "HTTPChunkTransport",
    "JsonHistoryStore",
    "MemoryHistoryStore",
    "LocalFile",
    "MemoryFile",
    "HistoryOutcome",
    "RecordHistoryUseCase",
    # Errors
    "VidupError",
    "TransportError",
    "UploadCancelledError",
    "InvalidStateError",
    "StorageError",
    "NotFoundError",
    "ConfigError",
]
