"""Chunk planning: map (file size, chunk size) to ordered byte ranges."""
from typing import Iterator, List, Sequence, TypeVar

from ..models import ChunkDescriptor

T = TypeVar("T")


def count_chunks(file_size: int, chunk_size: int) -> int:
    """ceil(file_size / chunk_size), never less than one."""
    _validate(file_size, chunk_size)
    return max(1, -(-file_size // chunk_size))


def plan_chunks(file_size: int, chunk_size: int) -> List[ChunkDescriptor]:
    """
    Split [0, file_size) into consecutive chunks of at most `chunk_size` bytes.

    The last chunk may be shorter. A zero-byte file yields exactly one
    zero-length chunk.

    Args:
        file_size: Total size in bytes (>= 0)
        chunk_size: Maximum chunk length in bytes (> 0)

    Returns:
        Descriptors ordered by index, tiling the file with no gaps or overlaps
    """
    total = count_chunks(file_size, chunk_size)
    return [
        ChunkDescriptor(
            index=index,
            byte_start=index * chunk_size,
            byte_end=min((index + 1) * chunk_size, file_size),
        )
        for index in range(total)
    ]


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Consecutive slices of `items`, each at most `size` long."""
    if size < 1:
        raise ValueError(f"batch size must be >= 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _validate(file_size: int, chunk_size: int) -> None:
    if file_size < 0:
        raise ValueError(f"file_size must be >= 0, got {file_size}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
