"""Application use cases built on the orchestrator and the stores."""
from .record_history import HistoryOutcome, RecordHistoryUseCase

__all__ = ["HistoryOutcome", "RecordHistoryUseCase"]
