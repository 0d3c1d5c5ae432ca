"""Services package."""

from bill_tracker.services.storage import (
    ConnectionError,
    GoogleSheetsBillStore,
    GoogleSheetsClient,
    InMemoryBillStore,
    JsonFileSnapshotStore,
    LocalRepository,
    MemorySnapshotStore,
    RemoteBillStore,
    SnapshotStore,
    StorageError,
)

__all__ = [
    "ConnectionError",
    "GoogleSheetsBillStore",
    "GoogleSheetsClient",
    "InMemoryBillStore",
    "JsonFileSnapshotStore",
    "LocalRepository",
    "MemorySnapshotStore",
    "RemoteBillStore",
    "SnapshotStore",
    "StorageError",
]
