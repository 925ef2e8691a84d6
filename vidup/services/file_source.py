"""File handles the orchestrator can slice by byte range."""
import asyncio
import mimetypes
from pathlib import Path
from typing import Optional


def guess_mime_type(name: str) -> str:
    mime, _ = mimetypes.guess_type(name)
    return mime or "application/octet-stream"


class LocalFile:
    """
    Read-only handle to a file on disk.

    Size is captured once at construction. Reads run in a worker thread so
    concurrent chunk reads never block the event loop; each read opens its
    own descriptor, so disjoint ranges are safe to read in parallel.
    """

    def __init__(self, path: Path, mime_type: Optional[str] = None):
        self.path = Path(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Not a file: {self.path}")
        self.name = self.path.name
        self.size = self.path.stat().st_size
        self.mime_type = mime_type or guess_mime_type(self.name)

    async def read_range(self, start: int, end: int) -> bytes:
        def _read():
            with open(self.path, "rb") as f:
                f.seek(start)
                return f.read(max(end - start, 0))

        return await asyncio.to_thread(_read)

    def __repr__(self) -> str:
        return f"LocalFile({str(self.path)!r}, size={self.size})"


class MemoryFile:
    """In-memory file handle (tests, generated content)."""

    def __init__(self, name: str, data: bytes, mime_type: Optional[str] = None):
        self.name = name
        self._data = bytes(data)
        self.size = len(self._data)
        self.mime_type = mime_type or guess_mime_type(name)

    async def read_range(self, start: int, end: int) -> bytes:
        return self._data[start:end]

    def __repr__(self) -> str:
        return f"MemoryFile({self.name!r}, size={self.size})"
