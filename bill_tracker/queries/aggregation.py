"""
Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and runs on the local copy.
Every figure shown to the user is a plain sum over stored rows; nothing
is estimated or cached.

The extra group (variable spend such as groceries) is listed and
subtotalled like any other group, but left out of the monthly committed
total.
"""

from decimal import Decimal
from typing import Iterable, Union

from bill_tracker.models.bill import Bill, BillStatus, MonthlyStats, StatusFilter


ZERO = Decimal("0")


def filtered_bills(
    bills: Iterable[Bill],
    month: str,
    status_filter: Union[StatusFilter, BillStatus, str] = StatusFilter.ALL,
) -> list[Bill]:
    """Bills of one month matching the status filter, in input order."""
    status_filter = StatusFilter(
        status_filter.value if isinstance(status_filter, BillStatus) else status_filter
    )
    return [
        bill for bill in bills
        if bill.month_ref == month
        and (status_filter == StatusFilter.ALL or bill.status.value == status_filter.value)
    ]


def monthly_stats(bills: Iterable[Bill], month: str, extra_group: str) -> MonthlyStats:
    """Total, paid and pending sums of one month, extra group excluded."""
    total = paid = pending = ZERO
    for bill in bills:
        if bill.month_ref != month or bill.group == extra_group:
            continue
        total += bill.amount
        if bill.status == BillStatus.PAID:
            paid += bill.amount
        else:
            pending += bill.amount
    return MonthlyStats(total=total, paid=paid, pending=pending)


def grouped_bills(bills: Iterable[Bill]) -> dict[str, list[Bill]]:
    """Partition bills by group, groups in first-seen order."""
    groups: dict[str, list[Bill]] = {}
    for bill in bills:
        groups.setdefault(bill.group, []).append(bill)
    return groups


def group_total(bills: Iterable[Bill]) -> Decimal:
    """Sum of one group's bills. The extra group is summed too."""
    return sum((bill.amount for bill in bills), ZERO)


def group_totals(groups: dict[str, list[Bill]]) -> dict[str, Decimal]:
    return {group: group_total(group_bills) for group, group_bills in groups.items()}
