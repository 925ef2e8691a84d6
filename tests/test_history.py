"""Tests for history stores and history views."""
import json
from datetime import date, datetime, timezone

import pytest

from vidup.errors import NotFoundError, StorageError
from vidup.models import HistoryRecord, StoredRecord
from vidup.services.history import (
    TSV_HEADER,
    JsonHistoryStore,
    MemoryHistoryStore,
    filter_by_date,
    to_tsv,
    upload_dates,
)


def _record(name="clip_1.mp4", platform="Android"):
    return HistoryRecord(
        file_name=name,
        url=f"https://cdn.example.com/{name}",
        file_size=1024,
        upload_duration=1500,
        platform=platform,
        original_file_name="clip.mp4",
    )


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryHistoryStore()
    return JsonHistoryStore(tmp_path / "history.json")


class TestStoreContract:
    @pytest.mark.asyncio
    async def test_append_assigns_id_and_timestamp(self, store):
        stored = await store.append(_record())

        assert stored.id == 1
        assert stored.file_name == "clip_1.mp4"
        assert stored.platform == "Android"
        assert stored.uploaded_at.tzinfo is not None
        assert await store.get(1) == stored

    @pytest.mark.asyncio
    async def test_list_newest_first(self, store):
        for name in ("a.mp4", "b.mp4", "c.mp4"):
            await store.append(_record(name))

        names = [r.file_name for r in await store.list_all()]

        assert names == ["c.mp4", "b.mp4", "a.mp4"]

    @pytest.mark.asyncio
    async def test_remove(self, store):
        first = await store.append(_record("a.mp4"))
        second = await store.append(_record("b.mp4"))

        await store.remove(first.id)

        assert [r.id for r in await store.list_all()] == [second.id]
        with pytest.raises(NotFoundError):
            await store.get(first.id)

    @pytest.mark.asyncio
    async def test_missing_ids(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await store.get(42)
        assert exc_info.value.record_id == 42
        with pytest.raises(NotFoundError):
            await store.remove(42)

    @pytest.mark.asyncio
    async def test_ids_never_reused(self, store):
        first = await store.append(_record("a.mp4"))
        await store.remove(first.id)
        second = await store.append(_record("b.mp4"))
        await store.clear()
        third = await store.append(_record("c.mp4"))

        assert (first.id, second.id, third.id) == (1, 2, 3)

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.append(_record())
        await store.clear()
        assert await store.list_all() == []


class TestJsonHistoryStore:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "history.json"
        stored = await JsonHistoryStore(path).append(_record(platform=None))

        reloaded = JsonHistoryStore(path)
        records = await reloaded.list_all()

        assert records == [stored]
        assert (await reloaded.append(_record("next.mp4"))).id == 2

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path):
        path = tmp_path / "history.json"
        store = JsonHistoryStore(path)
        await store.append(_record())
        await store.remove(1)

        data = json.loads(path.read_text())

        assert data == {"next_id": 2, "records": []}

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("{not json")

        with pytest.raises(StorageError, match="corrupt"):
            await JsonHistoryStore(path).list_all()

    @pytest.mark.asyncio
    async def test_invalid_record(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text(json.dumps({"next_id": 2, "records": [{"id": 1}]}))

        with pytest.raises(StorageError, match="invalid record"):
            await JsonHistoryStore(path).list_all()

    @pytest.mark.asyncio
    async def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonHistoryStore(blocker / "history.json")

        with pytest.raises(StorageError):
            await store.append(_record())

        assert await store.list_all() == []

    @pytest.mark.asyncio
    async def test_failed_writes_leave_store_unchanged(self, tmp_path):
        path = tmp_path / "history.json"
        store = JsonHistoryStore(path)
        first = await store.append(_record("a.mp4"))
        # A directory where the temp file goes makes every write fail
        blocker = path.with_suffix(".json.tmp")
        blocker.mkdir()

        with pytest.raises(StorageError):
            await store.append(_record("b.mp4"))
        with pytest.raises(StorageError):
            await store.remove(first.id)
        with pytest.raises(StorageError):
            await store.clear()

        assert await store.list_all() == [first]
        assert await JsonHistoryStore(path).list_all() == [first]

        blocker.rmdir()
        second = await store.append(_record("b.mp4"))
        assert second.id == 2


def _stored(record_id, when, name="a.mp4", platform="Web", url="https://cdn.example.com/a b.mp4"):
    return StoredRecord(
        id=record_id,
        file_name=name,
        url=url,
        file_size=1,
        upload_duration=1,
        uploaded_at=when,
        platform=platform,
    )


class TestHistoryViews:
    def setup_method(self):
        self.records = [
            _stored(1, datetime(2026, 3, 4, 9, 5, tzinfo=timezone.utc), name="morning.mp4"),
            _stored(2, datetime(2026, 3, 4, 14, 30, tzinfo=timezone.utc), name="afternoon.mp4"),
            _stored(3, datetime(2026, 3, 6, 8, 0, tzinfo=timezone.utc), name="later.mp4", platform=None),
        ]

    def test_upload_dates(self):
        assert upload_dates(self.records) == [date(2026, 3, 6), date(2026, 3, 4)]

    def test_filter_by_date(self):
        names = [r.file_name for r in filter_by_date(self.records, date(2026, 3, 4))]
        assert names == ["afternoon.mp4", "morning.mp4"]

    def test_filter_without_date_returns_all(self):
        assert [r.id for r in filter_by_date(self.records, None)] == [3, 2, 1]

    def test_to_tsv(self):
        lines = to_tsv(filter_by_date(self.records, None)).split("\n")

        assert lines[0] == TSV_HEADER
        assert lines[1] == "later.mp4\tN/A\thttps://cdn.example.com/a%20b.mp4\tMar 6, 2026\t08:00 AM"
        assert lines[2] == "afternoon.mp4\tWeb\thttps://cdn.example.com/a%20b.mp4\tMar 4, 2026\t02:30 PM"
        assert len(lines) == 4

    def test_to_tsv_empty(self):
        assert to_tsv([]) == TSV_HEADER
