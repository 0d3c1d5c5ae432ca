"""
Storage Services Package

Provides abstract interfaces and concrete implementations for both
persistence layers: the remote bills table and the local snapshot.
Google Sheets is the remote backend, but it is designed to be swappable.
"""

from bill_tracker.services.storage.interface import (
    ConnectionError,
    RemoteBillStore,
    SnapshotStore,
    StorageError,
)
from bill_tracker.services.storage.local import (
    JsonFileSnapshotStore,
    LocalRepository,
    MemorySnapshotStore,
)
from bill_tracker.services.storage.memory import InMemoryBillStore
from bill_tracker.services.storage.google_sheets import (
    GoogleSheetsBillStore,
    GoogleSheetsClient,
)

__all__ = [
    # Interfaces
    "RemoteBillStore",
    "SnapshotStore",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Local snapshot
    "JsonFileSnapshotStore",
    "LocalRepository",
    "MemorySnapshotStore",
    # Remote implementations
    "GoogleSheetsBillStore",
    "GoogleSheetsClient",
    "InMemoryBillStore",
]
