"""
Month tokens and the known month sequence.

Month tokens are zero-padded "YYYY-MM" strings, so plain string
comparison orders them chronologically.
"""

import re
from typing import Iterator, Sequence


MONTH_TOKEN_RE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

MONTH_LABELS = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]


def parse_month(token: str) -> tuple[int, int]:
    """Split a month token into (year, month)."""
    match = MONTH_TOKEN_RE.match(token)
    if not match:
        raise ValueError(f"Invalid month token: {token!r}")
    return int(match.group(1)), int(match.group(2))


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def add_months(token: str, count: int) -> str:
    """Move a month token forward (or back) by count months."""
    year, month = parse_month(token)
    total = year * 12 + (month - 1) + count
    return format_month(total // 12, total % 12 + 1)


def next_month(token: str) -> str:
    """The following month, rolling December over into the next year."""
    return add_months(token, 1)


def month_label(token: str) -> str:
    year, month = parse_month(token)
    return f"{MONTH_LABELS[month - 1]} {year}"


class MonthSequence:
    """
    The ordered list of months the application knows about.

    Fixed bills are generated up to the last month of the sequence.
    """

    def __init__(self, months: Sequence[str]):
        if not months:
            raise ValueError("A month sequence needs at least one month")
        for token in months:
            parse_month(token)
        self._months = sorted(set(months))

    @classmethod
    def span(cls, start: str, count: int) -> "MonthSequence":
        """count consecutive months starting at start."""
        return cls([add_months(start, offset) for offset in range(count)])

    @classmethod
    def for_year(cls, year: int) -> "MonthSequence":
        return cls.span(format_month(year, 1), 12)

    def __iter__(self) -> Iterator[str]:
        return iter(self._months)

    def __len__(self) -> int:
        return len(self._months)

    def __contains__(self, token: object) -> bool:
        return token in self._months

    def __repr__(self) -> str:
        return f"MonthSequence({self.first!r}..{self.last!r})"

    @property
    def first(self) -> str:
        return self._months[0]

    @property
    def last(self) -> str:
        return self._months[-1]

    def starting_at(self, token: str) -> list[str]:
        """Known months from token onwards, token included."""
        return [month for month in self._months if month >= token]

    def after(self, token: str) -> list[str]:
        """Known months strictly after token."""
        return [month for month in self._months if month > token]
