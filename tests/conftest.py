"""Shared fixtures: an in-memory transport that records what the orchestrator does."""
import asyncio
from typing import Dict, List, Optional

import pytest

from vidup.errors import TransportError
from vidup.models import FinalizeResult
from vidup.orchestrator.cancellation import CancellationToken

MB = 1024 * 1024


class FakeTransport:
    """
    ITransport double.

    - `fail_chunks` maps chunk index -> exception raised for that chunk
    - `delays` maps chunk index -> seconds the upload takes
    - `on_start` is called with the chunk when its upload begins
    """

    def __init__(
        self,
        fail_chunks: Optional[Dict[int, Exception]] = None,
        delays: Optional[Dict[int, float]] = None,
        finalize_error: Optional[Exception] = None,
        url: str = "https://cdn.example.com/video.mp4",
    ):
        self.fail_chunks = fail_chunks or {}
        self.delays = delays or {}
        self.finalize_error = finalize_error
        self.url = url
        self.on_start = None

        self.started: List[int] = []
        self.succeeded: List[int] = []
        self.payload_sizes: Dict[int, int] = {}
        self.in_flight = 0
        self.max_in_flight = 0
        self.finalize_calls = 0
        self.succeeded_at_finalize: Optional[int] = None
        self.upload_names: List[str] = []

    async def _upload(self, file_ref, chunk):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(chunk.index, 0))
            if chunk.index in self.fail_chunks:
                raise self.fail_chunks[chunk.index]
            data = await file_ref.read_range(chunk.byte_start, chunk.byte_end)
            self.payload_sizes[chunk.index] = len(data)
            self.succeeded.append(chunk.index)
            return {"ok": True}
        finally:
            self.in_flight -= 1

    async def upload_chunk(self, file_ref, chunk, total_chunks, upload_name, mime_type, token=None):
        self.started.append(chunk.index)
        self.upload_names.append(upload_name)
        if self.on_start:
            self.on_start(chunk)
        token = token or CancellationToken()
        return await token.guard(self._upload(file_ref, chunk))

    async def finalize(self, file_ref, total_chunks, upload_name, mime_type):
        self.finalize_calls += 1
        self.succeeded_at_finalize = len(self.succeeded)
        await asyncio.sleep(0)
        if self.finalize_error:
            raise self.finalize_error
        return FinalizeResult(url=self.url)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def chunk_failure():
    return TransportError("Chunk 2 failed (HTTP 500)", chunk_index=2, status_code=500)
