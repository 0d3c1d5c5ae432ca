"""CSV export of the monthly bill list."""

import csv
from io import StringIO
from typing import Iterable

from bill_tracker.models.bill import Bill


EXPORT_HEADER = ["Name", "Amount", "Group", "Installment", "Fixed", "Status"]


def sanitize_csv_value(value: str) -> str:
    """
    Prefix values a spreadsheet would run as a formula with a tab.
    """
    if not value or value.strip() == "":
        return ""

    value = value.strip()
    if value.startswith(("=", "+", "-", "@", "\t", "\r")):
        return "\t" + value
    return value


def export_filename(month: str) -> str:
    return f"bills_{month}.csv"


def export_bills(bills: Iterable[Bill]) -> str:
    output = StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for bill in bills:
        writer.writerow(
            [
                sanitize_csv_value(bill.name),
                f"{bill.amount:.2f}",
                sanitize_csv_value(bill.group),
                bill.installment_label,
                "yes" if bill.is_fixed else "no",
                bill.status.value,
            ]
        )
    return output.getvalue()
