"""Services (adapters) for vidup ports."""
from .api_client import HTTPChunkTransport
from .file_source import LocalFile, MemoryFile
from .history import JsonHistoryStore, MemoryHistoryStore

__all__ = [
    "HTTPChunkTransport",
    "LocalFile",
    "MemoryFile",
    "JsonHistoryStore",
    "MemoryHistoryStore",
]
