"""
Models for vidup.

Upload tasks are mutable and owned by a single orchestrator run; everything
handed to callers afterwards (snapshots, history records, config) is an
immutable dataclass.
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ConfigError, InvalidStateError
from .utils.naming import strip_extension, unique_upload_name


MB = 1024 * 1024
DEFAULT_CHUNK_SIZE = 5 * MB
DEFAULT_PARALLEL_UPLOADS = 3
PLATFORMS = ("Android", "iOS", "Web")

# Progress is capped here until finalize begins
CHUNK_PROGRESS_CAP = 95
FINALIZE_PROGRESS = 98


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(Enum):
    """Upload task status."""
    PENDING = "pending"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED)


_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.UPLOADING},
    TaskStatus.UPLOADING: {TaskStatus.FINALIZING, TaskStatus.FAILED, TaskStatus.CANCELLED},
    TaskStatus.FINALIZING: {TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED},
}


@dataclass(frozen=True)
class ChunkDescriptor:
    """Byte range [byte_start, byte_end) of the source file."""
    index: int
    byte_start: int
    byte_end: int

    @property
    def length(self) -> int:
        return self.byte_end - self.byte_start


@dataclass(frozen=True)
class FinalizeResult:
    """Server response to a finalize call."""
    url: str


@dataclass(frozen=True)
class TaskSnapshot:
    """Read-only view of an upload task for subscribers."""
    task_id: str
    display_name: str
    status: TaskStatus
    completed_chunks: int
    total_chunks: int
    progress: int
    result_url: Optional[str] = None
    error_reason: Optional[str] = None


@dataclass
class UploadTask:
    """
    One file upload, in flight or completed.

    State fields (status, progress, counters, result) are written only by
    the orchestrator run that owns the task.
    """
    file_ref: Any
    display_name: str = ""
    mime_type: str = ""
    platform: Optional[str] = None
    chunk_size: int = DEFAULT_CHUNK_SIZE
    upload_name: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    total_chunks: int = field(init=False)
    completed_chunks: int = field(init=False, default=0)
    status: TaskStatus = field(init=False, default=TaskStatus.PENDING)
    progress: int = field(init=False, default=0)
    result_url: Optional[str] = field(init=False, default=None)
    error_reason: Optional[str] = field(init=False, default=None)
    started_at: Optional[datetime] = field(init=False, default=None)
    finished_at: Optional[datetime] = field(init=False, default=None)

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        size = self.file_ref.size
        if size < 0:
            raise ValueError(f"file size must be >= 0, got {size}")
        # One chunk minimum, so finalize always has a chunk to assemble
        self.total_chunks = max(1, -(-size // self.chunk_size))
        if not self.display_name:
            self.display_name = strip_extension(self.file_ref.name)
        if not self.mime_type:
            self.mime_type = getattr(self.file_ref, "mime_type", "") or "application/octet-stream"
        if not self.upload_name:
            self.upload_name = unique_upload_name(self.display_name, self.file_ref.name)

    @property
    def file_size(self) -> int:
        return self.file_ref.size

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> Optional[int]:
        """Upload duration in milliseconds (None until finished)."""
        if self.started_at is None or self.finished_at is None:
            return None
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def transition(self, status: TaskStatus) -> None:
        """Move to `status`, rejecting transitions the lifecycle does not allow."""
        if status not in _TRANSITIONS.get(self.status, set()):
            raise InvalidStateError(
                f"Task {self.id}: cannot go from {self.status.value} to {status.value}"
            )
        self.status = status

    def snapshot(self) -> TaskSnapshot:
        return TaskSnapshot(
            task_id=self.id,
            display_name=self.display_name,
            status=self.status,
            completed_chunks=self.completed_chunks,
            total_chunks=self.total_chunks,
            progress=self.progress,
            result_url=self.result_url,
            error_reason=self.error_reason,
        )

    def retry(self) -> "UploadTask":
        """Fresh PENDING task for the same file and metadata."""
        if not self.is_terminal:
            raise InvalidStateError(f"Task {self.id} is {self.status.value}; only finished tasks can be retried")
        return UploadTask(
            file_ref=self.file_ref,
            display_name=self.display_name,
            mime_type=self.mime_type,
            platform=self.platform,
            chunk_size=self.chunk_size,
        )


@dataclass(frozen=True)
class HistoryRecord:
    """Immutable fact about a succeeded upload, before it is stored."""
    file_name: str
    url: str
    file_size: int
    upload_duration: int  # milliseconds
    platform: Optional[str] = None
    original_file_name: Optional[str] = None

    @classmethod
    def from_task(cls, task: UploadTask) -> "HistoryRecord":
        if task.status is not TaskStatus.SUCCEEDED:
            raise InvalidStateError(f"Task {task.id} is {task.status.value}; only succeeded uploads are recorded")
        return cls(
            file_name=task.upload_name,
            url=task.result_url,
            file_size=task.file_size,
            upload_duration=task.duration_ms or 0,
            platform=task.platform,
            original_file_name=task.file_ref.name,
        )


@dataclass(frozen=True)
class StoredRecord:
    """History record as persisted by a history store."""
    id: int
    file_name: str
    url: str
    file_size: int
    upload_duration: int
    uploaded_at: datetime
    platform: Optional[str] = None
    original_file_name: Optional[str] = None

    @classmethod
    def from_record(cls, record: HistoryRecord, record_id: int, uploaded_at: datetime) -> "StoredRecord":
        return cls(
            id=record_id,
            file_name=record.file_name,
            url=record.url,
            file_size=record.file_size,
            upload_duration=record.upload_duration,
            uploaded_at=uploaded_at,
            platform=record.platform,
            original_file_name=record.original_file_name,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "fileName": self.file_name,
            "url": self.url,
            "fileSize": self.file_size,
            "uploadDuration": self.upload_duration,
            "uploadedAt": self.uploaded_at.isoformat(),
        }
        if self.platform is not None:
            data["platform"] = self.platform
        if self.original_file_name is not None:
            data["originalFileName"] = self.original_file_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredRecord":
        return cls(
            id=int(data["id"]),
            file_name=data["fileName"],
            url=data["url"],
            file_size=int(data["fileSize"]),
            upload_duration=int(data["uploadDuration"]),
            uploaded_at=datetime.fromisoformat(data["uploadedAt"]),
            platform=data.get("platform"),
            original_file_name=data.get("originalFileName"),
        )


DEFAULT_HISTORY_PATH = Path.home() / ".local" / "share" / "vidup" / "history.json"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    api_url: str = ""
    user_id: int = 1
    chunk_size: int = DEFAULT_CHUNK_SIZE
    parallel_uploads: int = DEFAULT_PARALLEL_UPLOADS
    timeout: int = 60
    history_path: Path = DEFAULT_HISTORY_PATH
    default_platform: str = "Android"

    @classmethod
    def from_env(cls) -> "UploadConfig":
        """Build config from VIDUP_* environment variables."""
        history = os.getenv("VIDUP_HISTORY_FILE")
        return cls(
            api_url=(os.getenv("VIDUP_API_URL") or "").rstrip("/"),
            user_id=_env_int("VIDUP_USER_ID", 1),
            chunk_size=_env_int("VIDUP_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            parallel_uploads=_env_int("VIDUP_PARALLEL", DEFAULT_PARALLEL_UPLOADS),
            timeout=_env_int("VIDUP_TIMEOUT", 60),
            history_path=Path(history).expanduser() if history else DEFAULT_HISTORY_PATH,
        )
