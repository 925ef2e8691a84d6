"""
History stores - persist succeeded uploads locally.

Ids are assigned from a counter that only grows, so an id is never handed
out twice, even after `remove` or `clear`.
"""
import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..errors import NotFoundError, StorageError
from ..models import HistoryRecord, StoredRecord, utcnow
from ..protocols import IHistoryStore
from ..utils.naming import encode_uri

logger = logging.getLogger(__name__)

TSV_HEADER = "File Name\tPlatform\tURL\tDate\tTime"


def _newest_first(records: Iterable[StoredRecord]) -> List[StoredRecord]:
    return sorted(records, key=lambda r: (r.uploaded_at, r.id), reverse=True)


class MemoryHistoryStore(IHistoryStore):
    """Process-local history store."""

    def __init__(self):
        self._records: Dict[int, StoredRecord] = {}
        self._next_id = 1

    async def append(self, record: HistoryRecord) -> StoredRecord:
        stored = StoredRecord.from_record(record, self._next_id, utcnow())
        self._records[stored.id] = stored
        self._next_id += 1
        return stored

    async def list_all(self) -> List[StoredRecord]:
        return _newest_first(self._records.values())

    async def get(self, record_id: int) -> StoredRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise NotFoundError(record_id) from None

    async def remove(self, record_id: int) -> None:
        if record_id not in self._records:
            raise NotFoundError(record_id)
        del self._records[record_id]

    async def clear(self) -> None:
        self._records.clear()


class JsonHistoryStore(IHistoryStore):
    """
    History store backed by a JSON file.

    The file is loaded on first use and rewritten after every change.
    File layout:
        {"next_id": 4, "records": [{"id": 3, "fileName": ..., ...}, ...]}
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._records: Dict[int, StoredRecord] = {}
        self._next_id = 1
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return

        def _read() -> Optional[Dict[str, Any]]:
            if not self._path.exists():
                return None
            with open(self._path, "r", encoding="utf-8") as f:
                return json.load(f)

        try:
            data = await asyncio.to_thread(_read)
        except json.JSONDecodeError as e:
            raise StorageError(f"History file {self._path} is corrupt: {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot read history file {self._path}: {e}") from e

        if data is None:
            logger.debug("History: no file at %s, starting empty", self._path)
        else:
            try:
                records = [StoredRecord.from_dict(item) for item in data.get("records", [])]
                next_id = int(data.get("next_id", 1))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise StorageError(f"History file {self._path} has an invalid record: {e}") from e
            self._records = {r.id: r for r in records}
            self._next_id = max([next_id] + [r.id + 1 for r in records])
            logger.info("History: loaded %d record(s) from %s", len(self._records), self._path)

        self._loaded = True

    async def _commit(self, records: Dict[int, StoredRecord], next_id: int) -> None:
        """Write `records` to disk, then make them the in-memory state."""
        payload = {
            "next_id": next_id,
            "records": [r.to_dict() for r in sorted(records.values(), key=lambda r: r.id)],
        }

        def _write():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(self._path.suffix + ".tmp")
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            tmp.replace(self._path)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Cannot write history file {self._path}: {e}") from e

        self._records = records
        self._next_id = next_id

    async def append(self, record: HistoryRecord) -> StoredRecord:
        async with self._lock:
            await self._ensure_loaded()
            stored = StoredRecord.from_record(record, self._next_id, utcnow())
            await self._commit({**self._records, stored.id: stored}, self._next_id + 1)
            logger.debug("History: added #%d %s", stored.id, stored.file_name)
            return stored

    async def list_all(self) -> List[StoredRecord]:
        async with self._lock:
            await self._ensure_loaded()
            return _newest_first(self._records.values())

    async def get(self, record_id: int) -> StoredRecord:
        async with self._lock:
            await self._ensure_loaded()
            try:
                return self._records[record_id]
            except KeyError:
                raise NotFoundError(record_id) from None

    async def remove(self, record_id: int) -> None:
        async with self._lock:
            await self._ensure_loaded()
            if record_id not in self._records:
                raise NotFoundError(record_id)
            remaining = {k: v for k, v in self._records.items() if k != record_id}
            await self._commit(remaining, self._next_id)

    async def clear(self) -> None:
        async with self._lock:
            await self._ensure_loaded()
            await self._commit({}, self._next_id)
            logger.info("History: cleared")


# =========================================================================
# History views
# =========================================================================

def upload_dates(records: Iterable[StoredRecord]) -> List[date]:
    """Distinct upload dates (UTC), newest first."""
    return sorted({r.uploaded_at.date() for r in records}, reverse=True)


def filter_by_date(records: Iterable[StoredRecord], day: Optional[date]) -> List[StoredRecord]:
    """Records uploaded on `day` (all records when `day` is None), newest first."""
    if day is None:
        return _newest_first(records)
    return _newest_first(r for r in records if r.uploaded_at.date() == day)


def _format_date(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def to_tsv(records: Iterable[StoredRecord]) -> str:
    """Tab-separated table: File Name, Platform, URL, Date, Time."""
    rows = [TSV_HEADER]
    for r in records:
        rows.append(
            "\t".join(
                [
                    r.file_name,
                    r.platform or "N/A",
                    encode_uri(r.url),
                    _format_date(r.uploaded_at),
                    f"{r.uploaded_at:%I:%M %p}",
                ]
            )
        )
    return "\n".join(rows)
