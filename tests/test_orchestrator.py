"""
Integration tests for the BillTracker orchestrator.

Remote stores are in-memory fakes; see conftest.py.
"""

import asyncio

import pytest
from decimal import Decimal
from uuid import uuid4

from bill_tracker.models.audit import AuditEventType
from bill_tracker.models.bill import BillDraft, BillStatus, StatusFilter, SyncState
from bill_tracker.orchestrator import (
    DELETE_ERROR,
    FETCH_ERROR,
    FULL_SYNC_ERROR,
    SAVE_ERROR,
    BillNotFoundError,
    ConfirmationRequiredError,
    GroupError,
    TrackerError,
)
from bill_tracker.seed import DEFAULT_GROUPS, seed_bills
from bill_tracker.services.storage import InMemoryBillStore
from bill_tracker.validation import BillValidationError


def event_types(tracker):
    return [event.event_type for event in tracker.audit_logger.history]


def bill_named(tracker, name, month="2026-03"):
    return next(b for b in tracker.bills if b.name == name and b.month_ref == month)


class TestStartup:
    """Tests for local load and reconciliation."""

    @pytest.mark.asyncio
    async def test_first_run_pushes_seed(self, make_tracker, remote, repository, fixed_now):
        """Test that with no snapshot and an empty remote the seed set is pushed and kept."""
        tracker = make_tracker(remote)
        await tracker.start()

        assert len(tracker.bills) == 17
        assert len(remote.rows) == 17
        assert repository.load_bills() == tracker.bills
        assert tracker.groups == DEFAULT_GROUPS
        assert tracker.state == SyncState.SYNCED
        assert tracker.sync_status.last_sync == fixed_now
        assert AuditEventType.SEED_PUSHED in event_types(tracker)

    @pytest.mark.asyncio
    async def test_snapshot_pushed_to_empty_remote(self, make_tracker, remote, repository, make_bill):
        """Test that a local snapshot is uploaded when the remote table is empty."""
        local = [make_bill(name="Luz"), make_bill(name="Net")]
        repository.save_bills(local)
        tracker = make_tracker(remote)

        await tracker.start()

        assert tracker.bills == local
        assert remote.rows == local
        assert AuditEventType.LOCAL_PUSHED in event_types(tracker)

    @pytest.mark.asyncio
    async def test_remote_rows_win(self, make_tracker, repository, make_bill):
        """Test that non-empty remote rows replace the local snapshot."""
        repository.save_bills([make_bill(name="Luz")])
        remote_bills = [make_bill(name="Aluguel", group="Casa Nova")]
        tracker = make_tracker(InMemoryBillStore(remote_bills))

        tracker.load_local()
        assert [bill.name for bill in tracker.bills] == ["Luz"]

        await tracker.reconcile()

        assert tracker.bills == remote_bills
        assert repository.load_bills() == remote_bills
        assert "Casa Nova" in tracker.groups
        assert repository.load_groups() == tracker.groups

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_local_set(self, make_tracker, remote, repository, make_bill):
        local = [make_bill(name="Luz")]
        repository.save_bills(local)
        remote.fail_reads = True
        tracker = make_tracker(remote)

        await tracker.start()

        status = tracker.sync_status
        assert tracker.bills == local
        assert status.state == SyncState.SYNC_ERROR
        assert status.error_message == FETCH_ERROR
        assert status.last_sync is None

    @pytest.mark.asyncio
    async def test_push_failure_keeps_local_set(self, make_tracker, remote):
        remote.fail_writes = True
        tracker = make_tracker(remote)

        await tracker.start()

        assert len(tracker.bills) == 17
        assert tracker.state == SyncState.SYNC_ERROR
        assert remote.rows == []

    @pytest.mark.asyncio
    async def test_reconcile_requires_local_load(self, make_tracker, remote):
        with pytest.raises(TrackerError):
            await make_tracker(remote).reconcile()

    def test_local_load_uses_saved_groups(self, make_tracker, remote, repository):
        repository.save_groups(["Geral"])
        tracker = make_tracker(remote)
        tracker.load_local()

        assert tracker.state == SyncState.LOCAL_LOADED
        # Groups used by seed bills are appended
        assert tracker.groups == ["Geral", "Wil", "Nu B", "M.P", "Sicred"]


class TestBillMutations:
    """Tests for optimistic local-first mutations."""

    @pytest.fixture
    def seeded(self, flaky_store_factory):
        return flaky_store_factory(seed_bills())

    @pytest.mark.asyncio
    async def test_toggle_is_local_first(self, make_tracker, repository, gated_store_factory):
        """Test that local state changes before the remote write completes."""
        gated = gated_store_factory(seed_bills())
        tracker = make_tracker(gated)
        await tracker.start()
        tv = bill_named(tracker, "TV")

        toggled = tracker.toggle_status(tv.id)

        assert toggled.status == BillStatus.PAID
        assert bill_named(tracker, "TV").status == BillStatus.PAID
        assert bill_named(tracker, "TV", "2026-03") in repository.load_bills()
        assert tracker.sync_status.is_syncing is True
        await asyncio.sleep(0)
        assert next(b for b in gated.rows if b.id == tv.id).status == BillStatus.PENDING

        gated.gate.set()
        await tracker.wait_for_sync()

        assert next(b for b in gated.rows if b.id == tv.id).status == BillStatus.PAID
        assert tracker.sync_status.is_syncing is False

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_status(self, make_tracker, seeded):
        tracker = make_tracker(seeded)
        await tracker.start()
        luz = bill_named(tracker, "Luz")

        tracker.toggle_status(luz.id)
        tracker.toggle_status(luz.id)
        await tracker.wait_for_sync()

        assert bill_named(tracker, "Luz").status == BillStatus.PENDING

    @pytest.mark.asyncio
    async def test_remote_failure_does_not_revert(self, make_tracker, seeded):
        """Test that a failed write keeps the local change and raises the error flag."""
        tracker = make_tracker(seeded)
        await tracker.start()
        seeded.fail_writes = True
        luz = bill_named(tracker, "Luz")

        tracker.toggle_status(luz.id)
        await tracker.wait_for_sync()

        status = tracker.sync_status
        assert bill_named(tracker, "Luz").status == BillStatus.PAID
        assert status.error_message == SAVE_ERROR
        assert status.state == SyncState.SYNC_ERROR
        assert AuditEventType.REMOTE_SYNC_FAILED in event_types(tracker)

    @pytest.mark.asyncio
    async def test_delete_requires_confirmation(self, make_tracker, seeded):
        tracker = make_tracker(seeded)
        await tracker.start()
        ipva = bill_named(tracker, "IPVA")

        with pytest.raises(ConfirmationRequiredError):
            tracker.delete_bill(ipva.id)
        assert ipva in tracker.bills

    @pytest.mark.asyncio
    async def test_delete_bill(self, make_tracker, seeded):
        tracker = make_tracker(seeded)
        await tracker.start()
        ipva = bill_named(tracker, "IPVA")

        tracker.delete_bill(ipva.id, confirmed=True)
        await tracker.wait_for_sync()

        assert ipva.id not in {bill.id for bill in tracker.bills}
        assert ipva.id not in {bill.id for bill in seeded.rows}

    @pytest.mark.asyncio
    async def test_delete_failure_message(self, make_tracker, seeded):
        tracker = make_tracker(seeded)
        await tracker.start()
        seeded.fail_writes = True

        tracker.delete_bill(bill_named(tracker, "IPVA").id, confirmed=True)
        await tracker.wait_for_sync()

        assert tracker.sync_status.error_message == DELETE_ERROR

    @pytest.mark.asyncio
    async def test_unknown_bill(self, make_tracker, seeded):
        tracker = make_tracker(seeded)
        await tracker.start()
        with pytest.raises(BillNotFoundError):
            tracker.toggle_status(uuid4())

    def test_mutation_outside_event_loop(self, make_tracker, seeded):
        tracker = make_tracker(seeded)
        tracker.load_local()
        luz = bill_named(tracker, "Luz")

        with pytest.raises(TrackerError):
            tracker.toggle_status(luz.id)
        assert bill_named(tracker, "Luz").status == BillStatus.PENDING


class TestSaveBill:
    """Tests for form-driven create and edit."""

    @pytest.mark.asyncio
    async def test_create_fixed_bill(self, make_tracker, remote):
        """Test that a fixed bill created in March is inserted through December."""
        tracker = make_tracker(remote)
        await tracker.start()

        plan = tracker.save_bill(
            {"name": "Academia", "amount": "99,90", "group": "Geral", "is_fixed": True},
            "2026-03",
        )
        await tracker.wait_for_sync()

        assert len(plan.to_insert) == 10
        rows = [bill for bill in remote.rows if bill.name == "Academia"]
        assert sorted(bill.month_ref for bill in rows)[-1] == "2026-12"
        assert remote.calls[-1] == "insert"

    @pytest.mark.asyncio
    async def test_create_installments(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()

        tracker.save_bill(
            {
                "name": "Internet", "amount": "100", "group": "Geral",
                "is_installment": True, "installment_index": 1, "installment_count": 3,
            },
            "2026-01",
        )
        await tracker.wait_for_sync()

        assert [b.month_ref for b in tracker.bills if b.name == "Internet"] == [
            "2026-01", "2026-02", "2026-03",
        ]

    @pytest.mark.asyncio
    async def test_edit_cascades_forward(self, make_tracker, remote):
        """Test the installment edit scenario end to end."""
        tracker = make_tracker(remote)
        await tracker.start()
        tracker.create_bill(
            BillDraft(
                name="Internet", amount=Decimal("100"), group="Geral",
                is_installment=True, installment_index=1, installment_count=3,
            ),
            "2026-01",
        )
        february = bill_named(tracker, "Internet", "2026-02")

        tracker.save_bill(
            {
                "name": "Fibra", "amount": "120", "group": "Geral",
                "is_installment": True, "installment_index": 2, "installment_count": 3,
            },
            "2026-02",
            editing_bill_id=february.id,
        )
        await tracker.wait_for_sync()

        assert bill_named(tracker, "Internet", "2026-01").amount == Decimal("100")
        assert bill_named(tracker, "Fibra", "2026-02").amount == Decimal("120.00")
        assert bill_named(tracker, "Fibra", "2026-03").installment_index == 3
        assert sorted(b.month_ref for b in remote.rows if b.name == "Fibra") == ["2026-02", "2026-03"]

    @pytest.mark.asyncio
    async def test_invalid_form_changes_nothing(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()
        before = tracker.bills
        calls = list(remote.calls)

        with pytest.raises(BillValidationError):
            tracker.save_bill(
                {"name": "Casa", "amount": "876", "group": "Geral",
                 "is_fixed": True, "is_installment": True, "installment_count": 12},
                "2026-03",
            )

        assert tracker.bills == before
        assert remote.calls == calls
        assert event_types(tracker)[-1] == AuditEventType.VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_new_group_is_added(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()

        tracker.save_bill({"name": "Pix", "amount": "10", "group": "Inter"}, "2026-03")
        await tracker.wait_for_sync()

        assert tracker.groups[-1] == "Inter"

    @pytest.mark.asyncio
    async def test_invalid_reference_month(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()
        with pytest.raises(ValueError):
            tracker.create_bill(BillDraft(name="X", amount=Decimal("1"), group="Geral"), "2026-3")


class TestGroups:
    """Tests for group management."""

    @pytest.mark.asyncio
    async def test_delete_group_removes_its_bills(self, make_tracker, remote):
        """Test that deleting 'Wil' removes its three bills locally and remotely."""
        tracker = make_tracker(remote)
        await tracker.start()

        with pytest.raises(ConfirmationRequiredError):
            tracker.delete_group("Wil")

        removed = tracker.delete_group("Wil", confirmed=True)
        await tracker.wait_for_sync()

        assert len(removed) == 3
        assert "Wil" not in tracker.groups
        assert all(bill.group != "Wil" for bill in tracker.bills)
        assert all(bill.group != "Wil" for bill in remote.rows)
        assert len(remote.rows) == 14
        assert remote.calls[-1] == "delete_by_ids"

    @pytest.mark.asyncio
    async def test_rename_group_rewrites_bills(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()
        series_before = {b.id: b.series_id for b in tracker.bills if b.group == "Nu B"}

        affected = tracker.rename_group("Nu B", "Nubank")
        await tracker.wait_for_sync()

        assert len(affected) == 4
        assert "Nu B" not in tracker.groups
        assert tracker.groups.index("Nubank") == DEFAULT_GROUPS.index("Nu B")
        assert {b.id: b.series_id for b in tracker.bills if b.group == "Nubank"} == series_before
        assert sum(1 for b in remote.rows if b.group == "Nubank") == 4

    @pytest.mark.asyncio
    async def test_rename_empty_group_skips_remote(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()
        tracker.add_group("Inter")
        calls = list(remote.calls)

        assert tracker.rename_group("Inter", "Banco Inter") == []
        assert remote.calls == calls
        assert tracker.sync_status.is_syncing is False

    @pytest.mark.asyncio
    async def test_group_name_rules(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()

        with pytest.raises(GroupError):
            tracker.add_group("  ")
        with pytest.raises(GroupError):
            tracker.add_group("Geral")
        with pytest.raises(GroupError):
            tracker.rename_group("Geral", "Wil")
        with pytest.raises(GroupError):
            tracker.rename_group("Nope", "Other")
        with pytest.raises(GroupError):
            tracker.delete_group("Nope", confirmed=True)

    @pytest.mark.asyncio
    async def test_extra_group_cannot_be_renamed(self, make_tracker, remote):
        """Test that the group left out of monthly totals keeps its name."""
        tracker = make_tracker(remote)
        await tracker.start()
        tracker.save_bill({"name": "Feira", "amount": "250", "group": "Mercado"}, "2026-03")
        await tracker.wait_for_sync()
        groups = tracker.groups
        stats = tracker.monthly_stats("2026-03")
        calls = list(remote.calls)

        with pytest.raises(GroupError):
            tracker.rename_group("Mercado", "Supermercado")

        assert tracker.groups == groups
        assert tracker.monthly_stats("2026-03") == stats
        assert bill_named(tracker, "Feira").group == "Mercado"
        assert remote.calls == calls

    def test_add_group_is_local_only(self, make_tracker, remote, repository):
        tracker = make_tracker(remote)
        tracker.load_local()

        tracker.add_group("Inter")

        assert repository.load_groups()[-1] == "Inter"
        assert remote.calls == []


class TestSync:
    """Tests for the sync indicator and manual full sync."""

    @pytest.mark.asyncio
    async def test_force_full_sync_recovers(self, make_tracker, remote):
        """Test that drift after a failed write is fixed by a full sync."""
        tracker = make_tracker(remote)
        await tracker.start()
        remote.fail_writes = True
        tracker.delete_group("Wil", confirmed=True)
        tracker.toggle_status(bill_named(tracker, "Luz").id)
        await tracker.wait_for_sync()
        assert tracker.sync_status.has_error

        remote.fail_writes = False
        assert await tracker.force_full_sync() is True

        status = tracker.sync_status
        assert status.error_message is None
        assert status.state == SyncState.SYNCED
        assert next(b for b in remote.rows if b.name == "Luz").status == BillStatus.PAID

    @pytest.mark.asyncio
    async def test_force_full_sync_failure(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()
        remote.fail_writes = True

        assert await tracker.force_full_sync() is False
        assert tracker.sync_status.error_message == FULL_SYNC_ERROR

    @pytest.mark.asyncio
    async def test_incremental_success_keeps_error(self, make_tracker, remote):
        """Test that only a full sync clears a previous error."""
        tracker = make_tracker(remote)
        await tracker.start()
        remote.fail_writes = True
        tracker.toggle_status(bill_named(tracker, "Luz").id)
        await tracker.wait_for_sync()

        remote.fail_writes = False
        tracker.toggle_status(bill_named(tracker, "Net").id)
        await tracker.wait_for_sync()

        assert tracker.sync_status.error_message == SAVE_ERROR


class TestReads:
    """Tests for derived views."""

    @pytest.mark.asyncio
    async def test_monthly_views(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()

        stats = tracker.monthly_stats("2026-03")
        assert stats.total == sum(b.amount for b in tracker.bills if b.group != "Mercado")
        assert stats.paid == Decimal("0")
        assert list(tracker.grouped_bills("2026-03")) == ["Geral", "Wil", "Nu B", "M.P", "Sicred"]
        assert tracker.group_totals("2026-03")["Wil"] == Decimal("117.00")
        assert tracker.filtered_bills("2026-03", StatusFilter.PAID) == []

    @pytest.mark.asyncio
    async def test_export_csv(self, make_tracker, remote):
        tracker = make_tracker(remote)
        await tracker.start()

        filename, content = tracker.export_csv("2026-03")

        assert filename == "bills_2026-03.csv"
        assert content.splitlines()[1] == "Casa,876.00,Geral,5/12,no,pending"
        assert len(content.splitlines()) == 18
