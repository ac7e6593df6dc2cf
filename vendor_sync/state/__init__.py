"""Durable sync state: models, storage backend, progress/deployment stores."""

from vendor_sync.state.backend import FileBackend, MemoryBackend, StorageBackend
from vendor_sync.state.models import (
    STATE_VERSION,
    BlockRange,
    Checkpoint,
    Deployment,
    RouterRecord,
    SyncState,
    VaultRecord,
)
from vendor_sync.state.store import DeploymentStore, ProgressStore

__all__ = [
    "STATE_VERSION",
    "BlockRange",
    "Checkpoint",
    "Deployment",
    "DeploymentStore",
    "FileBackend",
    "MemoryBackend",
    "ProgressStore",
    "RouterRecord",
    "StorageBackend",
    "SyncState",
    "VaultRecord",
]
