"""Use case: persist a finished upload to the history store."""
import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import StorageError
from ..models import HistoryRecord, StoredRecord, TaskStatus, UploadTask
from ..protocols import IHistoryStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryOutcome:
    """Result of recording one upload."""
    record: Optional[StoredRecord] = None
    warning: Optional[str] = None

    @property
    def recorded(self) -> bool:
        return self.record is not None


class RecordHistoryUseCase:
    """
    Record succeeded uploads.

    A storage failure never undoes the upload (the remote file already
    exists); it comes back as a warning for the caller to show.
    """

    def __init__(self, store: IHistoryStore):
        self._store = store

    async def execute(self, task: UploadTask) -> HistoryOutcome:
        if task.status is not TaskStatus.SUCCEEDED:
            return HistoryOutcome()

        record = HistoryRecord.from_task(task)
        try:
            stored = await self._store.append(record)
        except StorageError as e:
            logger.warning(f"Upload of {task.upload_name} succeeded but history was not saved: {e}")
            return HistoryOutcome(warning=f"Uploaded, but not saved to history: {e}")

        return HistoryOutcome(record=stored)
