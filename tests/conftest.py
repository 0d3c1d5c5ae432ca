"""
Shared fixtures for Bill Tracker tests.

No real Google Sheets calls are made: remote stores are in-memory fakes
that can be gated or made to fail.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from bill_tracker.audit import AuditLogger
from bill_tracker.models.bill import Bill
from bill_tracker.orchestrator import BillTracker
from bill_tracker.series import MonthSequence, SeriesEngine
from bill_tracker.services.storage import (
    InMemoryBillStore,
    LocalRepository,
    MemorySnapshotStore,
    StorageError,
)


FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FlakyBillStore(InMemoryBillStore):
    """In-memory remote that records calls and fails on demand."""

    def __init__(self, bills: Optional[list[Bill]] = None):
        super().__init__(bills)
        self.calls: list[str] = []
        self.fail_reads = False
        self.fail_writes = False

    def _write(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_writes:
            raise StorageError(f"{operation} rejected")

    async def select_all(self) -> list[Bill]:
        self.calls.append("select_all")
        if self.fail_reads:
            raise StorageError("sheet unavailable")
        return await super().select_all()

    async def insert(self, bills: list[Bill]) -> None:
        self._write("insert")
        await super().insert(bills)

    async def upsert(self, bills: list[Bill]) -> None:
        self._write("upsert")
        await super().upsert(bills)

    async def delete_by_id(self, bill_id: UUID) -> None:
        self._write("delete_by_id")
        await super().delete_by_id(bill_id)

    async def delete_by_ids(self, bill_ids: list[UUID]) -> None:
        self._write("delete_by_ids")
        await super().delete_by_ids(bill_ids)


class GatedBillStore(FlakyBillStore):
    """Writes block until the gate is opened."""

    def __init__(self, bills: Optional[list[Bill]] = None):
        super().__init__(bills)
        self.gate = asyncio.Event()

    async def upsert(self, bills: list[Bill]) -> None:
        await self.gate.wait()
        await super().upsert(bills)


@pytest.fixture
def months():
    return MonthSequence.span("2026-01", 12)


@pytest.fixture
def engine(months):
    return SeriesEngine(months)


@pytest.fixture
def make_bill():
    """Factory for bills with sensible defaults."""
    def _make(**overrides) -> Bill:
        fields = {
            "month_ref": "2026-03",
            "name": "Luz",
            "amount": Decimal("160.00"),
            "group": "Geral",
        }
        fields.update(overrides)
        return Bill(**fields)
    return _make


@pytest.fixture
def snapshot_store():
    return MemorySnapshotStore()


@pytest.fixture
def repository(snapshot_store):
    return LocalRepository(snapshot_store)


@pytest.fixture
def remote():
    """Empty remote table that records calls."""
    return FlakyBillStore()


@pytest.fixture
def make_tracker(repository, engine):
    """Build a tracker over the given remote and the shared repository."""
    def _make(remote_store) -> BillTracker:
        return BillTracker(
            remote=remote_store,
            repository=repository,
            engine=engine,
            extra_group="Mercado",
            max_bill_amount=Decimal("100000"),
            audit_logger=AuditLogger(),
            clock=lambda: FIXED_NOW,
        )
    return _make


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def flaky_store_factory():
    return FlakyBillStore


@pytest.fixture
def gated_store_factory():
    return GatedBillStore
