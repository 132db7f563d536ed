"""Progress: the public service and its persistence collaborators."""

from masterycore.progress.service import ProgressService, RecalculationResult
from masterycore.progress.store import JsonProgressStore, ProgressStore, SqlProgressStore, open_store

__all__ = [
    "JsonProgressStore",
    "ProgressService",
    "ProgressStore",
    "RecalculationResult",
    "SqlProgressStore",
    "open_store",
]
