"""Sequential multi-file upload on top of UploadOrchestrator."""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from ..models import DEFAULT_PARALLEL_UPLOADS, TaskStatus, UploadTask
from ..protocols import ITransport
from ..utils.events import EventEmitter
from .cancellation import CancellationToken
from .core import UploadOrchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchCounts:
    """Running task counts for a batch."""
    pending: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.succeeded + self.failed + self.cancelled


class BatchCoordinator:
    """
    Uploads a list of tasks one file after another.

    Concurrency only happens inside a single file's chunks. One cancellation
    token covers the whole batch: cancelling stops the current file and no
    later file is started (those stay PENDING).

    Usage:
        coordinator = BatchCoordinator(orchestrator, transport, tasks)
        coordinator.on_task_finished(lambda task: print(task.status))
        await coordinator.run()
        print(coordinator.counts)

        coordinator.retry_failed()   # re-queue failed/cancelled files
        await coordinator.run()
    """

    def __init__(
        self,
        orchestrator: UploadOrchestrator,
        transport: ITransport,
        tasks: Iterable[UploadTask] = (),
        concurrency_limit: int = DEFAULT_PARALLEL_UPLOADS,
    ):
        self._orchestrator = orchestrator
        self._transport = transport
        self._tasks: List[UploadTask] = list(tasks)
        self._concurrency_limit = concurrency_limit
        self._events = EventEmitter()
        self._token: Optional[CancellationToken] = None
        self._running = False

    # Event subscription methods
    def on_task_start(self, callback: Callable[[UploadTask], None]):
        """Called before a task's upload starts. Receives UploadTask."""
        self._events.on("task_start", callback)

    def on_task_finished(self, callback: Callable[[UploadTask], None]):
        """Called with each task once it reaches a terminal state. Receives UploadTask."""
        self._events.on("task_finished", callback)

    @property
    def tasks(self) -> List[UploadTask]:
        return list(self._tasks)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def counts(self) -> BatchCounts:
        tally: Dict[TaskStatus, int] = {}
        for task in self._tasks:
            tally[task.status] = tally.get(task.status, 0) + 1
        return BatchCounts(
            # In-flight tasks are not finished yet; count them with the pending ones
            pending=tally.get(TaskStatus.PENDING, 0)
            + tally.get(TaskStatus.UPLOADING, 0)
            + tally.get(TaskStatus.FINALIZING, 0),
            succeeded=tally.get(TaskStatus.SUCCEEDED, 0),
            failed=tally.get(TaskStatus.FAILED, 0),
            cancelled=tally.get(TaskStatus.CANCELLED, 0),
        )

    def add(self, task: UploadTask) -> None:
        if task.status is not TaskStatus.PENDING:
            raise ValueError(f"Only pending tasks can be queued, got {task.status.value}")
        self._tasks.append(task)

    def remove(self, task_id: str) -> None:
        """Drop a task that is not currently uploading."""
        for task in self._tasks:
            if task.id == task_id:
                if task.status in (TaskStatus.UPLOADING, TaskStatus.FINALIZING):
                    raise ValueError(f"Task {task_id} is uploading")
                self._tasks.remove(task)
                return
        raise KeyError(task_id)

    def retry_failed(self) -> int:
        """Replace FAILED and CANCELLED tasks with fresh PENDING copies. Returns how many."""
        if self._running:
            raise RuntimeError("Cannot retry while the batch is running")
        retried = 0
        for position, task in enumerate(self._tasks):
            if task.status in (TaskStatus.FAILED, TaskStatus.CANCELLED):
                self._tasks[position] = task.retry()
                retried += 1
        return retried

    def cancel(self, reason: str = "Upload cancelled") -> None:
        """Abort the current file and skip the rest."""
        if self._token is not None:
            self._token.cancel(reason)

    async def run(self, token: Optional[CancellationToken] = None) -> List[UploadTask]:
        """
        Upload every PENDING task in order.

        Tasks that are already terminal are skipped.

        Returns:
            All tasks of the batch, in order
        """
        if self._running:
            raise RuntimeError("Batch is already running")

        self._token = token or CancellationToken()
        self._running = True
        pending = [t for t in self._tasks if t.status is TaskStatus.PENDING]
        logger.info(f"Starting batch: {len(pending)} file(s) to upload")

        try:
            for index, task in enumerate(pending, 1):
                if self._token.is_cancelled:
                    logger.info("Batch cancelled, remaining files left pending")
                    break

                logger.info(f"[{index}/{len(pending)}] {task.display_name}")
                await self._events.emit("task_start", task)
                await self._orchestrator.run(
                    task,
                    self._transport,
                    self._concurrency_limit,
                    self._token,
                )
                await self._events.emit("task_finished", task)

                if task.status is TaskStatus.CANCELLED:
                    break
        finally:
            self._running = False

        counts = self.counts
        logger.info(
            f"Batch finished: {counts.succeeded} succeeded, {counts.failed} failed, "
            f"{counts.cancelled} cancelled, {counts.pending} pending"
        )
        return self.tasks
