"""Core orchestrator - drives one file through the chunked upload pipeline."""
import asyncio
import logging
from typing import Callable, Optional, Sequence

from ..errors import InvalidStateError, UploadCancelledError
from ..models import (
    CHUNK_PROGRESS_CAP,
    DEFAULT_PARALLEL_UPLOADS,
    FINALIZE_PROGRESS,
    ChunkDescriptor,
    TaskSnapshot,
    TaskStatus,
    UploadTask,
    utcnow,
)
from ..protocols import ITransport, IUploadLifecycle, NullLifecycle
from ..utils.events import EventEmitter
from .cancellation import CancellationToken
from .splitter import batched, plan_chunks

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Runs the chunk upload state machine for one task at a time.

    PENDING -> UPLOADING -> FINALIZING -> SUCCEEDED
                   |             |
                   +-> FAILED / CANCELLED

    Chunks are sent in sequential batches of `concurrency_limit`; the
    members of a batch run concurrently and the next batch starts only once
    every member has settled. The first failure stops the plan and finalize
    is never called.

    Usage:
        orchestrator = UploadOrchestrator()
        orchestrator.on_progress(lambda snap: print(f"{snap.progress}%"))

        async with HTTPChunkTransport(api_url) as transport:
            task = UploadTask(file_ref=LocalFile("movie.mp4"), platform="Web")
            task = await orchestrator.run(task, transport, concurrency_limit=3)
            print(task.status, task.result_url)
    """

    def __init__(self, lifecycle: Optional[IUploadLifecycle] = None):
        self._lifecycle = lifecycle or NullLifecycle()
        self._events = EventEmitter()

    # Event subscription methods
    def on_status(self, callback: Callable[[TaskSnapshot], None]):
        """Called on every status transition. Receives TaskSnapshot."""
        self._events.on("status", callback)

    def on_progress(self, callback: Callable[[TaskSnapshot], None]):
        """Called whenever the progress percentage changes. Receives TaskSnapshot."""
        self._events.on("progress", callback)

    def on_chunk(self, callback: Callable[[TaskSnapshot, ChunkDescriptor], None]):
        """Called after each chunk is accepted. Receives (TaskSnapshot, ChunkDescriptor)."""
        self._events.on("chunk", callback)

    async def run(
        self,
        task: UploadTask,
        transport: ITransport,
        concurrency_limit: int = DEFAULT_PARALLEL_UPLOADS,
        token: Optional[CancellationToken] = None,
    ) -> UploadTask:
        """
        Upload `task` and return it in a terminal state.

        Args:
            task: PENDING task to upload
            transport: Chunk/finalize transport
            concurrency_limit: Chunks in flight per batch
            token: Cancellation signal (a fresh one is created when omitted)

        Returns:
            The same task, SUCCEEDED, FAILED or CANCELLED

        Raises:
            InvalidStateError: task is not PENDING
        """
        if task.status is not TaskStatus.PENDING:
            raise InvalidStateError(f"Task {task.id} is {task.status.value}, expected pending")
        if concurrency_limit < 1:
            raise ValueError(f"concurrency_limit must be >= 1, got {concurrency_limit}")

        token = token or CancellationToken()
        chunks = plan_chunks(task.file_size, task.chunk_size)
        counter_lock = asyncio.Lock()

        logger.info(
            f"Uploading {task.upload_name}: {task.file_size} bytes in "
            f"{task.total_chunks} chunk(s), {concurrency_limit} parallel"
        )

        task.started_at = utcnow()
        task.transition(TaskStatus.UPLOADING)
        await self._events.emit("status", task.snapshot())
        await self._notify_lifecycle("start", task)

        try:
            await self._upload_batches(task, transport, chunks, concurrency_limit, token, counter_lock)
            if not task.is_terminal and task.completed_chunks != task.total_chunks:
                # Never finalize a partial upload
                if token.is_cancelled:
                    await self._finish(task, TaskStatus.CANCELLED, token.reason)
                else:
                    await self._finish(
                        task,
                        TaskStatus.FAILED,
                        f"Only {task.completed_chunks}/{task.total_chunks} chunks were uploaded",
                    )
            if not task.is_terminal:
                await self._finalize(task, transport)
        except asyncio.CancelledError:
            # The surrounding asyncio task was cancelled; never leave the task mid-flight
            if not task.is_terminal:
                self._mark_terminal(task, TaskStatus.CANCELLED, "Upload cancelled")
            raise
        finally:
            await self._notify_lifecycle("end", task)

        return task

    async def _upload_batches(
        self,
        task: UploadTask,
        transport: ITransport,
        chunks: Sequence[ChunkDescriptor],
        concurrency_limit: int,
        token: CancellationToken,
        counter_lock: asyncio.Lock,
    ) -> None:
        for batch in batched(chunks, concurrency_limit):
            if token.is_cancelled:
                await self._finish(task, TaskStatus.CANCELLED, token.reason or "Upload cancelled")
                return

            logger.debug(
                f"{task.upload_name}: sending chunks {batch[0].index}-{batch[-1].index} "
                f"of {task.total_chunks}"
            )
            await asyncio.gather(
                *(
                    self._upload_chunk(task, transport, chunk, token, counter_lock)
                    for chunk in batch
                ),
                return_exceptions=True,
            )

            if task.is_terminal:
                return

    async def _upload_chunk(
        self,
        task: UploadTask,
        transport: ITransport,
        chunk: ChunkDescriptor,
        token: CancellationToken,
        counter_lock: asyncio.Lock,
    ) -> None:
        try:
            await transport.upload_chunk(
                task.file_ref,
                chunk,
                task.total_chunks,
                task.upload_name,
                task.mime_type,
                token,
            )
        except UploadCancelledError as e:
            await self._finish(task, TaskStatus.CANCELLED, str(e) or "Upload cancelled")
            return
        except asyncio.CancelledError:
            # Either the transport aborted the request or run() itself is being
            # cancelled; gather keeps the former from reaching run()
            await self._finish(task, TaskStatus.CANCELLED, token.reason or "Upload cancelled")
            raise
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            if token.is_cancelled:
                # An abort can surface as a transport failure; the cause is still the cancel
                await self._finish(task, TaskStatus.CANCELLED, token.reason or "Upload cancelled")
            else:
                logger.warning(f"{task.upload_name}: chunk {chunk.index} failed: {error_msg}")
                await self._finish(task, TaskStatus.FAILED, error_msg)
            return

        async with counter_lock:
            if task.is_terminal:
                logger.debug(f"{task.upload_name}: chunk {chunk.index} settled after the task ended, ignored")
                return
            task.completed_chunks += 1
            task.progress = max(task.progress, task.completed_chunks * CHUNK_PROGRESS_CAP // task.total_chunks)
            snapshot = task.snapshot()

        await self._events.emit("chunk", snapshot, chunk)
        await self._events.emit("progress", snapshot)

    async def _finalize(self, task: UploadTask, transport: ITransport) -> None:
        task.transition(TaskStatus.FINALIZING)
        task.progress = FINALIZE_PROGRESS
        await self._events.emit("status", task.snapshot())
        await self._events.emit("progress", task.snapshot())

        try:
            result = await transport.finalize(
                task.file_ref,
                task.total_chunks,
                task.upload_name,
                task.mime_type,
            )
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            logger.warning(f"{task.upload_name}: finalize failed: {error_msg}")
            await self._finish(task, TaskStatus.FAILED, error_msg)
            return

        task.result_url = result.url
        task.progress = 100
        await self._finish(task, TaskStatus.SUCCEEDED)
        await self._events.emit("progress", task.snapshot())
        logger.info(f"✓ Uploaded {task.upload_name} in {task.duration_ms} ms: {task.result_url}")

    async def _finish(self, task: UploadTask, status: TaskStatus, reason: Optional[str] = None) -> None:
        """Move to a terminal status once; later calls are no-ops."""
        if task.is_terminal:
            return
        self._mark_terminal(task, status, reason)
        if status is TaskStatus.CANCELLED:
            logger.info(f"{task.upload_name}: cancelled")
        await self._events.emit("status", task.snapshot())

    @staticmethod
    def _mark_terminal(task: UploadTask, status: TaskStatus, reason: Optional[str]) -> None:
        task.transition(status)
        if status is not TaskStatus.SUCCEEDED:
            task.error_reason = reason
        task.finished_at = utcnow()

    async def _notify_lifecycle(self, phase: str, task: UploadTask) -> None:
        hook = self._lifecycle.on_uploading_start if phase == "start" else self._lifecycle.on_uploading_end
        try:
            await hook(task)
        except Exception as e:
            logger.warning(f"Lifecycle hook on_uploading_{phase} failed: {e}")
