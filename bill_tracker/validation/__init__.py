"""Bill form validation package."""

from bill_tracker.validation.validator import (
    BillValidationError,
    BillValidator,
    parse_amount,
)

__all__ = ["BillValidationError", "BillValidator", "parse_amount"]
