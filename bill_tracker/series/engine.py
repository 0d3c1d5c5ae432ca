"""
Bill Series Engine

Decides which monthly rows to insert and which to rewrite when a bill is
created or edited, so that fixed and installment series stay consistent.

DESIGN DECISION: The engine is pure. It reads the current collection and
returns a SeriesPlan; the orchestrator applies the plan and syncs exactly
the rows in it.

RULES:
- A series is the set of rows sharing a series_id
- Generation never creates a second row for the same (name, group, month)
- Edits cascade to the edited month and later, never earlier
- Cascades rewrite shared fields only; status and installment numbers
  of other rows are left alone
"""

from typing import Callable, Iterable, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from bill_tracker.models.bill import Bill, BillDraft, BillStatus
from bill_tracker.series.months import MonthSequence, next_month


class SeriesPlan(BaseModel):
    """Rows to insert and rows to rewrite for one save intent."""

    series_id: UUID
    to_insert: list[Bill] = Field(default_factory=list)
    to_update: list[Bill] = Field(default_factory=list)

    @property
    def written(self) -> list[Bill]:
        """Every row that must be pushed to the remote store."""
        return self.to_update + self.to_insert

    @property
    def is_empty(self) -> bool:
        return not self.to_insert and not self.to_update


class SeriesEngine:
    """
    Plans the rows of fixed and installment series.

    Args:
        months: The known month sequence; fixed bills are generated up to
            its last month.
        id_factory: Source of new row and series ids.
    """

    def __init__(
        self,
        months: MonthSequence,
        id_factory: Callable[[], UUID] = uuid4,
    ):
        self._months = months
        self._new_id = id_factory

    @property
    def months(self) -> MonthSequence:
        return self._months

    def _new_row(
        self,
        draft: BillDraft,
        series_id: UUID,
        month_ref: str,
        status: BillStatus,
        installment_index: Optional[int] = None,
    ) -> Bill:
        return Bill(
            id=self._new_id(),
            series_id=series_id,
            month_ref=month_ref,
            status=status,
            **draft.shared_fields(),
            **draft.installment_fields(installment_index),
        )

    @staticmethod
    def _taken_keys(bills: Iterable[Bill]) -> set[tuple[str, str, str]]:
        return {bill.dedup_key for bill in bills}

    def plan_create(
        self,
        draft: BillDraft,
        reference_month: str,
        bills: list[Bill],
    ) -> SeriesPlan:
        """
        Plan the rows of a new bill starting at reference_month.

        Fixed bills fill the known months from reference_month on; a month
        before the sequence also gets the whole sequence.
        Installment bills get one row per remaining installment in
        consecutive calendar months. Anything else is a single row.
        """
        series_id = self._new_id()
        plan = SeriesPlan(series_id=series_id)
        taken = self._taken_keys(bills)

        if draft.is_fixed:
            if reference_month < self._months.first:
                months = [reference_month] + list(self._months)
            elif reference_month in self._months:
                months = self._months.starting_at(reference_month)
            else:
                months = [reference_month]
            for month_ref in months:
                if (draft.name, draft.group, month_ref) in taken:
                    continue
                plan.to_insert.append(
                    self._new_row(draft, series_id, month_ref, draft.status)
                )

        elif draft.is_installment and draft.installment_count > 1:
            month_ref = reference_month
            for index in range(draft.installment_index, draft.installment_count + 1):
                # A month already holding this bill keeps its row; the
                # installment number is consumed either way
                if (draft.name, draft.group, month_ref) not in taken:
                    plan.to_insert.append(
                        self._new_row(draft, series_id, month_ref, draft.status, index)
                    )
                month_ref = next_month(month_ref)

        else:
            plan.to_insert.append(
                self._new_row(draft, series_id, reference_month, draft.status)
            )

        return plan

    def future_siblings(self, original: Bill, bills: list[Bill]) -> list[Bill]:
        """Rows of the same series at or after the original's month."""
        return [
            bill for bill in bills
            if bill.series_id == original.series_id
            and bill.month_ref >= original.month_ref
        ]

    def plan_edit(
        self,
        original: Bill,
        draft: BillDraft,
        bills: list[Bill],
    ) -> SeriesPlan:
        """
        Plan the cascade of an edit made on original.

        The edited row takes every draft field. Later rows of the series
        take the shared fields and keep their own status and installment
        numbers. A fixed draft also fills the known months after the
        edited one that have no row yet.
        """
        plan = SeriesPlan(series_id=original.series_id)
        shared = draft.shared_fields()

        for sibling in self.future_siblings(original, bills):
            if sibling.id == original.id:
                updated = sibling.model_copy(update={
                    **shared,
                    **draft.installment_fields(),
                    "status": draft.status,
                })
            else:
                updated = sibling.model_copy(update=shared)
            plan.to_update.append(updated)

        if draft.is_fixed:
            updated_ids = {bill.id for bill in plan.to_update}
            current = [bill for bill in bills if bill.id not in updated_ids] + plan.to_update
            taken = self._taken_keys(current)
            series_months = {
                bill.month_ref for bill in current
                if bill.series_id == original.series_id
            }
            for month_ref in self._months.after(original.month_ref):
                if month_ref in series_months:
                    continue
                if (draft.name, draft.group, month_ref) in taken:
                    continue
                plan.to_insert.append(
                    self._new_row(draft, original.series_id, month_ref, BillStatus.PENDING)
                )

        return plan
