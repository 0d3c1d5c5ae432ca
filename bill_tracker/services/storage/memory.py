"""
In-Memory Remote Store

Used when no remote backend is configured (offline mode) and in tests.
Behaves like the real table: rows keep insertion order, upsert replaces
by id, deletes ignore unknown ids.
"""

from typing import Optional
from uuid import UUID

from bill_tracker.models.bill import Bill
from bill_tracker.services.storage.interface import RemoteBillStore


class InMemoryBillStore(RemoteBillStore):
    """Dict-backed implementation of the remote bills table."""

    def __init__(self, bills: Optional[list[Bill]] = None):
        self._rows: dict[UUID, Bill] = {}
        for bill in bills or []:
            self._rows[bill.id] = bill

    @property
    def rows(self) -> list[Bill]:
        return list(self._rows.values())

    async def select_all(self) -> list[Bill]:
        return [bill.model_copy() for bill in self._rows.values()]

    async def insert(self, bills: list[Bill]) -> None:
        for bill in bills:
            self._rows[bill.id] = bill.model_copy()

    async def upsert(self, bills: list[Bill]) -> None:
        for bill in bills:
            self._rows[bill.id] = bill.model_copy()

    async def delete_by_id(self, bill_id: UUID) -> None:
        self._rows.pop(bill_id, None)

    async def delete_by_ids(self, bill_ids: list[UUID]) -> None:
        for bill_id in bill_ids:
            self._rows.pop(bill_id, None)
