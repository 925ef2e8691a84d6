"""Orchestrator package - chunk planning, cancellation and upload workflows."""
from .batch import BatchCoordinator, BatchCounts
from .cancellation import CancellationToken
from .core import UploadOrchestrator
from .splitter import batched, count_chunks, plan_chunks

__all__ = [
    "UploadOrchestrator",
    "BatchCoordinator",
    "BatchCounts",
    "CancellationToken",
    "plan_chunks",
    "count_chunks",
    "batched",
]
