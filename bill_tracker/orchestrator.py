"""
Main Orchestrator for Bill Tracker

This module owns the bill collection and the group list, and defines
the end-to-end flows for:
1. Startup (local snapshot -> remote fetch -> adopt, push or seed)
2. Mutations (toggle, delete, create, edit, group rename/delete)
3. Manual full sync

DESIGN DECISION: The orchestrator enforces the boundaries:
- It is the only writer of the collection and of the local snapshot
- Local state changes synchronously, before any remote call starts
- Remote calls run as background tasks; a failure becomes an error
  message on the sync indicator and never reverts the local change
- Nothing is retried automatically; force_full_sync() is the recovery path
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Optional, Union
from uuid import UUID

from bill_tracker.audit import AuditLogger, get_logger
from bill_tracker.config import get_settings
from bill_tracker.export import export_bills, export_filename
from bill_tracker.models.audit import AuditEventBuilder, AuditEventType
from bill_tracker.models.bill import (
    Bill,
    BillDraft,
    MonthlyStats,
    StatusFilter,
    SyncState,
    SyncStatus,
)
from bill_tracker.queries import aggregation
from bill_tracker.seed import DEFAULT_EXTRA_GROUP, DEFAULT_GROUPS, seed_bills
from bill_tracker.series import MonthSequence, SeriesEngine, SeriesPlan, parse_month
from bill_tracker.services.storage import (
    GoogleSheetsBillStore,
    GoogleSheetsClient,
    InMemoryBillStore,
    JsonFileSnapshotStore,
    LocalRepository,
    RemoteBillStore,
    StorageError,
)
from bill_tracker.validation import BillValidationError, BillValidator


logger = get_logger(__name__)


# User-facing sync error messages
FETCH_ERROR = "Could not sync with the cloud"
PUSH_ERROR = "Could not upload local bills to the cloud"
SAVE_ERROR = "Could not save to the cloud"
INSERT_ERROR = "Could not save new bills to the cloud"
DELETE_ERROR = "Could not delete from the cloud"
FULL_SYNC_ERROR = "Full sync with the cloud failed"


class TrackerError(Exception):
    """Base exception for invalid requests to the tracker."""
    pass


class BillNotFoundError(TrackerError):
    """No bill with the given id."""
    pass


class GroupError(TrackerError):
    """Group name is empty, already taken, or unknown."""
    pass


class ConfirmationRequiredError(TrackerError):
    """A destructive action was requested without explicit confirmation."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BillTracker:
    """
    Owns the bill collection and keeps it in sync with both stores.

    State machine:
        UNINITIALIZED -> LOCAL_LOADED -> RECONCILING -> SYNCED | SYNC_ERROR

    Mutations must be called from inside a running event loop, since
    their remote half is scheduled on it. Call wait_for_sync() to wait
    for the remote half of every mutation made so far.
    """

    def __init__(
        self,
        remote: RemoteBillStore,
        repository: LocalRepository,
        engine: SeriesEngine,
        extra_group: str = DEFAULT_EXTRA_GROUP,
        max_bill_amount: Optional[Decimal] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._remote = remote
        self._repository = repository
        self._engine = engine
        self._extra_group = extra_group
        self._max_bill_amount = max_bill_amount
        self._audit = audit_logger or AuditLogger()
        self._clock = clock

        self._bills: list[Bill] = []
        self._groups: list[str] = []
        self._had_snapshot = False

        self._state = SyncState.UNINITIALIZED
        self._last_sync: Optional[datetime] = None
        self._error: Optional[str] = None
        self._in_flight = 0
        self._pending: set[asyncio.Task] = set()

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def bills(self) -> list[Bill]:
        return list(self._bills)

    @property
    def groups(self) -> list[str]:
        return list(self._groups)

    @property
    def months(self) -> MonthSequence:
        return self._engine.months

    @property
    def extra_group(self) -> str:
        return self._extra_group

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit

    @property
    def sync_status(self) -> SyncStatus:
        return SyncStatus(
            state=self._state,
            is_syncing=bool(self._pending) or self._in_flight > 0,
            last_sync=self._last_sync,
            error_message=self._error,
        )

    def get_bill(self, bill_id: UUID) -> Bill:
        return self._find(bill_id)[1]

    def filtered_bills(
        self,
        month: str,
        status_filter: Union[StatusFilter, str] = StatusFilter.ALL,
    ) -> list[Bill]:
        return aggregation.filtered_bills(self._bills, month, status_filter)

    def monthly_stats(self, month: str) -> MonthlyStats:
        return aggregation.monthly_stats(self._bills, month, self._extra_group)

    def grouped_bills(
        self,
        month: str,
        status_filter: Union[StatusFilter, str] = StatusFilter.ALL,
    ) -> dict[str, list[Bill]]:
        return aggregation.grouped_bills(self.filtered_bills(month, status_filter))

    def group_totals(
        self,
        month: str,
        status_filter: Union[StatusFilter, str] = StatusFilter.ALL,
    ) -> dict[str, Decimal]:
        return aggregation.group_totals(self.grouped_bills(month, status_filter))

    def export_csv(
        self,
        month: str,
        status_filter: Union[StatusFilter, str] = StatusFilter.ALL,
    ) -> tuple[str, str]:
        """(filename, csv_text) of the month's filtered list."""
        return export_filename(month), export_bills(self.filtered_bills(month, status_filter))

    # =========================================================================
    # STARTUP
    # =========================================================================

    def load_local(self) -> None:
        """Adopt the local snapshot, or the seed set if there is none."""
        bills = self._repository.load_bills()
        self._had_snapshot = bills is not None
        self._bills = bills if bills is not None else seed_bills()

        groups = self._repository.load_groups()
        self._groups = groups if groups is not None else list(DEFAULT_GROUPS)
        if self._merge_groups_from_bills():
            self._repository.save_groups(self._groups)

        self._state = SyncState.LOCAL_LOADED
        self._audit.log(AuditEventBuilder.local_loaded(
            bill_count=len(self._bills),
            from_snapshot=self._had_snapshot,
        ))

    async def reconcile(self) -> None:
        """
        Fetch the remote table and settle who wins.

        Remote rows win when there are any. An empty remote receives the
        local snapshot, or the seed set when there was no snapshot.
        """
        if self._state == SyncState.UNINITIALIZED:
            raise TrackerError("load_local() must run before reconcile()")

        self._state = SyncState.RECONCILING
        self._error = None
        self._in_flight += 1
        try:
            try:
                remote_bills = await self._remote.select_all()
            except StorageError as e:
                self._record_failure("select_all", FETCH_ERROR, e)
                return

            if remote_bills:
                self._bills = remote_bills
                if self._merge_groups_from_bills():
                    self._repository.save_groups(self._groups)
                self._save_bills()
                self._audit.log(AuditEventBuilder.remote_adopted(len(remote_bills)))
                self._mark_synced()
                return

            to_push = list(self._bills)
            try:
                await self._remote.insert(to_push)
            except StorageError as e:
                self._record_failure("insert", PUSH_ERROR, e)
                return

            if not self._had_snapshot:
                self._save_bills()
            self._audit.log(AuditEventBuilder.collection_pushed(
                bill_count=len(to_push),
                seed=not self._had_snapshot,
            ))
            self._mark_synced()
        finally:
            self._in_flight -= 1

    async def start(self) -> None:
        """Load locally, then reconcile with the remote table."""
        self.load_local()
        await self.reconcile()

    # =========================================================================
    # BILL MUTATIONS
    # =========================================================================

    def toggle_status(self, bill_id: UUID) -> Bill:
        """Flip a bill between pending and paid."""
        self._require_loop()
        index, bill = self._find(bill_id)
        updated = bill.model_copy(update={"status": bill.status.toggled()})
        self._bills[index] = updated
        self._save_bills()

        self._audit.log_status_toggled(bill_id=updated.id, status=updated.status.value)
        self._dispatch("upsert", SAVE_ERROR, 1, lambda: self._remote.upsert([updated]))
        return updated

    def delete_bill(self, bill_id: UUID, *, confirmed: bool = False) -> Bill:
        """Delete one monthly row. Requires confirmed=True."""
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a bill must be confirmed")
        self._require_loop()
        index, bill = self._find(bill_id)
        del self._bills[index]
        self._save_bills()

        self._audit.log(AuditEventBuilder.bill_deleted(bill.id, bill.name, bill.month_ref))
        self._dispatch("delete_by_id", DELETE_ERROR, 1, lambda: self._remote.delete_by_id(bill.id))
        return bill

    def create_bill(self, draft: BillDraft, reference_month: str) -> SeriesPlan:
        """Insert the rows of a new bill starting at reference_month."""
        parse_month(reference_month)
        self._require_loop()
        plan = self._engine.plan_create(draft, reference_month, self._bills)
        self._bills.extend(plan.to_insert)
        self._ensure_group(draft.group)
        self._save_bills()

        self._audit.log(AuditEventBuilder.bills_created(
            series_id=plan.series_id,
            month_refs=[bill.month_ref for bill in plan.to_insert],
        ))
        if plan.to_insert:
            rows = list(plan.to_insert)
            self._dispatch("insert", INSERT_ERROR, len(rows), lambda: self._remote.insert(rows))
        return plan

    def edit_bill(self, bill_id: UUID, draft: BillDraft) -> SeriesPlan:
        """Apply an edit to a bill and cascade it to its future siblings."""
        self._require_loop()
        _, original = self._find(bill_id)
        plan = self._engine.plan_edit(original, draft, self._bills)

        replacements = {bill.id: bill for bill in plan.to_update}
        self._bills = [replacements.get(bill.id, bill) for bill in self._bills]
        self._bills.extend(plan.to_insert)
        self._ensure_group(draft.group)
        self._save_bills()

        self._audit.log(AuditEventBuilder.bills_updated(
            bill_id=original.id,
            updated=len(plan.to_update),
            inserted=len(plan.to_insert),
        ))
        rows = plan.written
        self._dispatch("upsert", SAVE_ERROR, len(rows), lambda: self._remote.upsert(rows))
        return plan

    def save_bill(
        self,
        form: Mapping[str, Any],
        reference_month: str,
        editing_bill_id: Optional[UUID] = None,
    ) -> SeriesPlan:
        """
        Validate raw form input, then create or edit.

        Raises BillValidationError before anything changes if the form
        is invalid.
        """
        validator = BillValidator(
            known_groups=self._groups,
            max_amount=self._max_bill_amount,
        )
        result = validator.validate(form)
        if not result.is_valid:
            self._audit.log(AuditEventBuilder.validation_failed([
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]))
            raise BillValidationError(result)

        if editing_bill_id is not None:
            return self.edit_bill(editing_bill_id, result.draft)
        return self.create_bill(result.draft, reference_month)

    # =========================================================================
    # GROUP MUTATIONS
    # =========================================================================

    def add_group(self, name: str) -> None:
        name = self._clean_group_name(name)
        if name in self._groups:
            raise GroupError(f"Group already exists: {name}")
        self._groups.append(name)
        self._repository.save_groups(self._groups)
        self._audit.log(AuditEventBuilder.group_changed(AuditEventType.GROUP_ADDED, name, 0))

    def rename_group(self, old_name: str, new_name: str) -> list[Bill]:
        """
        Rename a group and rewrite the group of every bill in it.

        This is a bulk field rewrite; series ids are untouched. The extra
        group keeps its name so it stays out of the monthly totals.
        """
        new_name = self._clean_group_name(new_name)
        if old_name not in self._groups:
            raise GroupError(f"Unknown group: {old_name}")
        if old_name == self._extra_group:
            raise GroupError(f"{old_name} is excluded from monthly totals and cannot be renamed")
        if new_name in self._groups:
            raise GroupError(f"Group already exists: {new_name}")
        self._require_loop()

        self._groups[self._groups.index(old_name)] = new_name
        affected = []
        for index, bill in enumerate(self._bills):
            if bill.group == old_name:
                self._bills[index] = bill.model_copy(update={"group": new_name})
                affected.append(self._bills[index])
        self._repository.save_groups(self._groups)
        self._save_bills()

        self._audit.log(AuditEventBuilder.group_changed(
            AuditEventType.GROUP_RENAMED, old_name, len(affected), new_name=new_name,
        ))
        if affected:
            self._dispatch(
                "upsert", SAVE_ERROR, len(affected), lambda: self._remote.upsert(affected)
            )
        return affected

    def delete_group(self, name: str, *, confirmed: bool = False) -> list[Bill]:
        """Delete a group and every bill in it. Requires confirmed=True."""
        if not confirmed:
            raise ConfirmationRequiredError("Deleting a group must be confirmed")
        if name not in self._groups:
            raise GroupError(f"Unknown group: {name}")
        self._require_loop()

        self._groups.remove(name)
        removed = [bill for bill in self._bills if bill.group == name]
        self._bills = [bill for bill in self._bills if bill.group != name]
        self._repository.save_groups(self._groups)
        self._save_bills()

        self._audit.log(AuditEventBuilder.group_changed(
            AuditEventType.GROUP_DELETED, name, len(removed),
        ))
        if removed:
            ids = [bill.id for bill in removed]
            self._dispatch(
                "delete_by_ids", DELETE_ERROR, len(ids), lambda: self._remote.delete_by_ids(ids)
            )
        return removed

    # =========================================================================
    # SYNC
    # =========================================================================

    async def force_full_sync(self) -> bool:
        """
        Upsert the whole local collection to the remote table.

        Returns True on success, which also clears the error indicator.
        """
        rows = list(self._bills)
        self._in_flight += 1
        try:
            await self._remote.upsert(rows)
        except StorageError as e:
            self._record_failure("full_sync", FULL_SYNC_ERROR, e)
            return False
        finally:
            self._in_flight -= 1

        self._error = None
        self._mark_synced()
        self._audit.log(AuditEventBuilder.full_sync_completed(len(rows)))
        return True

    async def wait_for_sync(self) -> None:
        """Wait until every scheduled remote call has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _find(self, bill_id: UUID) -> tuple[int, Bill]:
        for index, bill in enumerate(self._bills):
            if bill.id == bill_id:
                return index, bill
        raise BillNotFoundError(f"Bill not found: {bill_id}")

    @staticmethod
    def _clean_group_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise GroupError("Group name cannot be empty")
        return name

    def _ensure_group(self, name: str) -> None:
        if name not in self._groups:
            self._groups.append(name)
            self._repository.save_groups(self._groups)

    def _merge_groups_from_bills(self) -> bool:
        """Append groups used by bills but missing from the list."""
        changed = False
        for bill in self._bills:
            if bill.group not in self._groups:
                self._groups.append(bill.group)
                changed = True
        return changed

    def _save_bills(self) -> None:
        self._repository.save_bills(self._bills)

    def _mark_synced(self) -> None:
        self._last_sync = self._clock()
        if self._error is None:
            self._state = SyncState.SYNCED

    def _record_failure(self, operation: str, message: str, error: Exception) -> None:
        self._error = message
        self._state = SyncState.SYNC_ERROR
        self._audit.log_remote_sync_failed(
            operation=operation,
            user_message=message,
            error=str(error),
        )

    @staticmethod
    def _require_loop() -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise TrackerError("Bill mutations must run inside an asyncio event loop")

    def _dispatch(
        self,
        operation: str,
        error_message: str,
        row_count: int,
        call: Callable[[], Awaitable[None]],
    ) -> asyncio.Task:
        task = self._require_loop().create_task(
            self._run_remote(operation, error_message, row_count, call)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run_remote(
        self,
        operation: str,
        error_message: str,
        row_count: int,
        call: Callable[[], Awaitable[None]],
    ) -> bool:
        try:
            await call()
        except StorageError as e:
            self._record_failure(operation, error_message, e)
            return False

        self._last_sync = self._clock()
        self._audit.log_remote_synced(operation=operation, row_count=row_count)
        return True


def create_app_components(use_remote: bool = True) -> BillTracker:
    """
    Factory function to build a BillTracker from settings.

    Args:
        use_remote: Whether to connect to Google Sheets.
                    Set to False to run fully offline (in-memory remote).

    Returns:
        A tracker in the UNINITIALIZED state; call start() on it.
    """
    settings = get_settings()
    app_settings = settings.app
    local_settings = settings.local_store

    repository = LocalRepository(
        JsonFileSnapshotStore(local_settings.directory),
        bills_key=local_settings.bills_key,
        groups_key=local_settings.groups_key,
    )
    engine = SeriesEngine(
        MonthSequence.span(app_settings.calendar_start, app_settings.calendar_months)
    )

    remote: RemoteBillStore = InMemoryBillStore()
    if use_remote and app_settings.remote_backend == "sheets":
        try:
            remote = GoogleSheetsBillStore(GoogleSheetsClient())
        except Exception as e:
            # Remote not configured - continue offline
            logger.warning("remote_store_unavailable", error=str(e))

    return BillTracker(
        remote=remote,
        repository=repository,
        engine=engine,
        extra_group=app_settings.extra_group,
        max_bill_amount=app_settings.max_bill_amount,
    )
