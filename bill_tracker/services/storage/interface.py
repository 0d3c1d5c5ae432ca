"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for both persistence layers.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing and offline use
3. Keep the sync orchestration decoupled from any backend

The remote interface is intentionally tiny - bulk read plus four writes.
All filtering and aggregation happens in memory on the local copy.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from bill_tracker.models.bill import Bill


class RemoteBillStore(ABC):
    """
    Abstract interface for the remote "bills" table.

    Any remote implementation (Google Sheets, hosted SQL, etc.)
    must implement these methods. Every failure is raised as StorageError.
    """

    @abstractmethod
    async def select_all(self) -> list[Bill]:
        """
        Read every bill row.

        Returns:
            All stored bills, in storage order

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def insert(self, bills: list[Bill]) -> None:
        """
        Insert new rows.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def upsert(self, bills: list[Bill]) -> None:
        """
        Insert rows or replace the stored rows with the same id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_by_id(self, bill_id: UUID) -> None:
        """
        Delete one row. Deleting an unknown id is not an error.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def delete_by_ids(self, bill_ids: list[UUID]) -> None:
        """
        Delete a set of rows. Unknown ids are ignored.

        Raises:
            StorageError: If the delete fails
        """
        pass


class SnapshotStore(ABC):
    """
    Abstract interface for the on-device key-value snapshot store.

    Values are opaque serialized strings. Access is synchronous.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under key, or None if absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
