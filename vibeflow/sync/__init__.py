from .diff import DiffSyncEngine, SyncResult
from .realtime import RealtimeMerger, merge_remote_state
from .worker import EffectWorker, SyncStatus

__all__ = [
    "DiffSyncEngine",
    "SyncResult",
    "EffectWorker",
    "SyncStatus",
    "RealtimeMerger",
    "merge_remote_state",
]
