"""Tests for vidup models."""
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vidup.errors import ConfigError, InvalidStateError
from vidup.models import (
    DEFAULT_CHUNK_SIZE,
    HistoryRecord,
    StoredRecord,
    TaskStatus,
    UploadConfig,
    UploadTask,
)
from vidup.services.file_source import MemoryFile
from vidup.utils.naming import encode_uri, encode_uri_component, strip_extension, unique_upload_name


def _task(size=10, chunk_size=4, name="holiday.mp4", **kwargs):
    return UploadTask(file_ref=MemoryFile(name, b"x" * size), chunk_size=chunk_size, **kwargs)


class TestUploadTask:
    def test_defaults_from_file(self):
        task = _task()
        assert task.status is TaskStatus.PENDING
        assert task.display_name == "holiday"
        assert task.mime_type == "video/mp4"
        assert task.total_chunks == 3
        assert task.completed_chunks == 0
        assert task.progress == 0
        assert task.result_url is None
        assert task.error_reason is None
        assert re.fullmatch(r"holiday_\d+\.mp4", task.upload_name)

    def test_zero_byte_file_has_one_chunk(self):
        assert _task(size=0).total_chunks == 1

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            _task(chunk_size=0)

    def test_explicit_metadata_kept(self):
        task = _task(display_name="Launch teaser", mime_type="video/webm", platform="iOS")
        assert task.display_name == "Launch teaser"
        assert task.mime_type == "video/webm"
        assert task.platform == "iOS"
        assert task.upload_name.startswith("Launch teaser_")

    def test_ids_are_unique(self):
        assert _task().id != _task().id

    def test_valid_transitions(self):
        task = _task()
        task.transition(TaskStatus.UPLOADING)
        task.transition(TaskStatus.FINALIZING)
        task.transition(TaskStatus.SUCCEEDED)
        assert task.is_terminal

    def test_pending_cannot_jump_to_finalizing(self):
        with pytest.raises(InvalidStateError):
            _task().transition(TaskStatus.FINALIZING)

    @pytest.mark.parametrize("terminal", [TaskStatus.FAILED, TaskStatus.CANCELLED])
    def test_no_transition_out_of_terminal(self, terminal):
        task = _task()
        task.transition(TaskStatus.UPLOADING)
        task.transition(terminal)
        for status in TaskStatus:
            with pytest.raises(InvalidStateError):
                task.transition(status)

    def test_duration_ms(self):
        task = _task()
        assert task.duration_ms is None
        task.started_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        task.finished_at = task.started_at + timedelta(seconds=2, milliseconds=500)
        assert task.duration_ms == 2500

    def test_snapshot_is_a_copy(self):
        task = _task()
        snap = task.snapshot()
        task.completed_chunks = 2
        assert snap.completed_chunks == 0
        assert snap.task_id == task.id
        assert snap.total_chunks == 3

    def test_retry_creates_fresh_pending_task(self):
        task = _task(platform="Web")
        task.transition(TaskStatus.UPLOADING)
        task.transition(TaskStatus.FAILED)

        retry = task.retry()

        assert retry.status is TaskStatus.PENDING
        assert retry.id != task.id
        assert retry.file_ref is task.file_ref
        assert retry.platform == "Web"
        assert retry.display_name == task.display_name

    def test_retry_requires_terminal(self):
        with pytest.raises(InvalidStateError):
            _task().retry()


class TestHistoryRecord:
    def _succeeded_task(self):
        task = _task(platform="Android")
        task.transition(TaskStatus.UPLOADING)
        task.transition(TaskStatus.FINALIZING)
        task.transition(TaskStatus.SUCCEEDED)
        task.result_url = "https://cdn.example.com/holiday.mp4"
        task.started_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
        task.finished_at = task.started_at + timedelta(seconds=3)
        return task

    def test_from_succeeded_task(self):
        task = self._succeeded_task()
        record = HistoryRecord.from_task(task)

        assert record.file_name == task.upload_name
        assert record.url == "https://cdn.example.com/holiday.mp4"
        assert record.file_size == 10
        assert record.upload_duration == 3000
        assert record.platform == "Android"
        assert record.original_file_name == "holiday.mp4"

    def test_from_unfinished_task_rejected(self):
        with pytest.raises(InvalidStateError):
            HistoryRecord.from_task(_task())

    def test_immutable(self):
        record = HistoryRecord.from_task(self._succeeded_task())
        with pytest.raises(Exception):
            record.url = "other"


class TestStoredRecord:
    def test_dict_omits_missing_optionals(self):
        stored = StoredRecord(
            id=7,
            file_name="a_1.mp4",
            url="https://x/a.mp4",
            file_size=5,
            upload_duration=10,
            uploaded_at=datetime(2026, 3, 4, 5, 6, tzinfo=timezone.utc),
        )
        data = stored.to_dict()

        assert data["fileName"] == "a_1.mp4"
        assert data["uploadedAt"] == "2026-03-04T05:06:00+00:00"
        assert "platform" not in data
        assert "originalFileName" not in data
        assert StoredRecord.from_dict(data) == stored

    def test_from_dict_with_optionals(self):
        stored = StoredRecord.from_dict(
            {
                "id": 1,
                "fileName": "a.mp4",
                "url": "u",
                "fileSize": 1,
                "uploadDuration": 2,
                "uploadedAt": "2026-03-04T05:06:00+00:00",
                "platform": "Web",
                "originalFileName": "orig.mp4",
            }
        )
        assert stored.platform == "Web"
        assert stored.original_file_name == "orig.mp4"


class TestUploadConfig:
    def test_defaults(self, monkeypatch):
        for name in ("VIDUP_API_URL", "VIDUP_USER_ID", "VIDUP_CHUNK_SIZE", "VIDUP_PARALLEL", "VIDUP_TIMEOUT", "VIDUP_HISTORY_FILE"):
            monkeypatch.delenv(name, raising=False)
        config = UploadConfig.from_env()
        assert config.api_url == ""
        assert config.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.parallel_uploads == 3
        assert config.user_id == 1

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("VIDUP_API_URL", "https://api.example.com/Users/")
        monkeypatch.setenv("VIDUP_CHUNK_SIZE", "1048576")
        monkeypatch.setenv("VIDUP_PARALLEL", "5")
        monkeypatch.setenv("VIDUP_HISTORY_FILE", str(tmp_path / "h.json"))
        config = UploadConfig.from_env()
        assert config.api_url == "https://api.example.com/Users"
        assert config.chunk_size == 1048576
        assert config.parallel_uploads == 5
        assert config.history_path == Path(tmp_path / "h.json")

    @pytest.mark.parametrize("value", ["abc", "0", "-2"])
    def test_bad_integer(self, monkeypatch, value):
        monkeypatch.setenv("VIDUP_PARALLEL", value)
        with pytest.raises(ConfigError):
            UploadConfig.from_env()


class TestNaming:
    def test_strip_extension(self):
        assert strip_extension("clip.final.mp4") == "clip.final"
        assert strip_extension("noext") == "noext"

    def test_unique_upload_name_keeps_extension(self):
        name = unique_upload_name("My clip", "source.MOV")
        assert re.fullmatch(r"My clip_\d+\.MOV", name)

    def test_unique_upload_name_without_extension(self):
        assert re.fullmatch(r"raw_\d+", unique_upload_name("raw", "raw"))

    def test_encode_uri_component(self):
        assert encode_uri_component("my clip/ü.mp4") == "my%20clip%2F%C3%BC.mp4"
        assert encode_uri_component("a-b_c.d!~*'()") == "a-b_c.d!~*'()"

    def test_encode_uri_keeps_reserved(self):
        assert encode_uri("https://x.com/a b.mp4?x=1") == "https://x.com/a%20b.mp4?x=1"
