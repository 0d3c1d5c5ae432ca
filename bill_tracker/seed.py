"""
Built-in seed data.

Used when there is neither a local snapshot nor any remote row: the
household's March 2026 bills and the default group list.
"""

from decimal import Decimal
from uuid import UUID

from bill_tracker.models.bill import Bill


SEED_MONTH = "2026-03"

DEFAULT_GROUPS = ["Geral", "Wil", "Nu B", "M.P", "Sicred", "Mercado"]

DEFAULT_EXTRA_GROUP = "Mercado"

# (name, amount, group, installment (current, total) or None, fixed)
_SEED_ROWS = [
    ("Casa", "876.00", "Geral", (5, 12), False),
    ("TV", "35.00", "Geral", None, True),
    ("Net", "102.00", "Geral", None, True),
    ("Condomínio", "350.00", "Geral", None, True),
    ("Luz", "160.00", "Geral", None, True),
    ("Seguro", "85.50", "Geral", None, True),
    ("IPTU", "50.11", "Geral", (1, 6), False),
    ("IPVA", "31.00", "Geral", None, False),
    ("Wil", "32.00", "Wil", (5, 6), False),
    ("Wil", "50.00", "Wil", (2, 3), False),
    ("Wil", "35.00", "Wil", (2, 4), False),
    ("Nu B", "375.00", "Nu B", (9, 12), False),
    ("Nu B", "59.89", "Nu B", (3, 5), False),
    ("Nu B", "28.59", "Nu B", (4, 10), False),
    ("Nu B", "56.63", "Nu B", (2, 2), False),
    ("M.P", "70.79", "M.P", (9, 24), False),
    ("Sicred", "255.86", "Sicred", None, False),
]


def seed_bills() -> list[Bill]:
    """
    A fresh copy of the seed rows.

    Rows sharing a name and group (the three "Wil" installments) are
    distinct obligations, so every seed row is its own series.
    """
    bills = []
    for offset, (name, amount, group, installment, fixed) in enumerate(_SEED_ROWS):
        bill_id = UUID(f"550e8400-e29b-41d4-a716-4466554400{offset:02d}")
        bills.append(Bill(
            id=bill_id,
            series_id=bill_id,
            month_ref=SEED_MONTH,
            name=name,
            amount=Decimal(amount),
            group=group,
            is_installment=installment is not None,
            installment_index=installment[0] if installment else None,
            installment_count=installment[1] if installment else None,
            is_fixed=fixed,
        ))
    return bills
