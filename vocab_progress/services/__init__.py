"""Service layer package."""

from vocab_progress.services.facade import ProgressFacade, UpdateResult
from vocab_progress.services.offline_queue import OfflineQueue
from vocab_progress.services.progress_store import ProgressStore, ReplayReport, StoreResult
from vocab_progress.services.session_tracker import SessionSnapshot, SessionTracker

__all__ = [
    "OfflineQueue",
    "ProgressFacade",
    "ProgressStore",
    "ReplayReport",
    "SessionSnapshot",
    "SessionTracker",
    "StoreResult",
    "UpdateResult",
]
