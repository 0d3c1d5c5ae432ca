"""
Tests for the two-stage bill form validator.
"""

import pytest
from decimal import Decimal

from bill_tracker.models.bill import BillStatus
from bill_tracker.validation import BillValidationError, BillValidator, parse_amount


@pytest.fixture
def validator():
    return BillValidator(known_groups=["Geral", "Wil"], max_amount=Decimal("100000"))


def form(**overrides):
    fields = {"name": "Luz", "amount": "160,00", "group": "Geral"}
    fields.update(overrides)
    return fields


class TestParseAmount:
    """Tests for amount parsing."""

    @pytest.mark.parametrize("raw, expected", [
        ("85.50", Decimal("85.50")),
        ("85,50", Decimal("85.50")),
        ("1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        (" 31 ", Decimal("31.00")),
        (102, Decimal("102.00")),
    ])
    def test_accepts_common_formats(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", "nan", "inf", None, True])
    def test_rejects_non_numbers(self, raw):
        with pytest.raises(ValueError):
            parse_amount(raw)


class TestSchemaValidation:
    """Stage 1: required fields and types."""

    def test_valid_form_builds_draft(self, validator):
        result = validator.validate(form())

        assert result.is_valid is True
        assert result.draft.name == "Luz"
        assert result.draft.amount == Decimal("160.00")
        assert result.draft.status == BillStatus.PENDING

    def test_missing_name(self, validator):
        result = validator.validate(form(name="   "))

        assert result.schema_valid is False
        assert result.draft is None
        assert any(issue.field == "name" for issue in result.issues)

    def test_bad_amount(self, validator):
        result = validator.validate(form(amount="cento e sessenta"))
        assert result.is_valid is False
        assert result.issues[0].field == "amount"

    def test_non_integer_due_day(self, validator):
        result = validator.validate(form(due_day="dez"))
        assert result.is_valid is False

    def test_unknown_status(self, validator):
        result = validator.validate(form(status="overdue"))
        assert result.is_valid is False

    def test_name_too_long(self, validator):
        result = validator.validate(form(name="x" * 201))
        assert result.is_valid is False

    def test_checkbox_strings(self, validator):
        result = validator.validate(form(is_fixed="on"))
        assert result.draft.is_fixed is True


class TestSemanticValidation:
    """Stage 2: logic checks."""

    def test_negative_amount(self, validator):
        result = validator.validate(form(amount="-5"))

        assert result.schema_valid is True
        assert result.semantic_valid is False

    def test_fixed_and_installment_conflict(self, validator):
        """Test that the two recurrence kinds cannot be combined."""
        result = validator.validate(form(
            is_fixed=True, is_installment=True, installment_index=1, installment_count=3,
        ))
        assert result.is_valid is False
        assert any(issue.issue_type == "conflict" for issue in result.issues)

    def test_installment_past_total(self, validator):
        result = validator.validate(form(
            is_installment=True, installment_index=4, installment_count=3,
        ))
        assert result.is_valid is False

    def test_zero_installment_rejected(self, validator):
        result = validator.validate(form(
            is_installment=True, installment_index=0, installment_count=3,
        ))
        assert result.is_valid is False

    def test_installment_numbers_ignored_for_single_bill(self, validator):
        result = validator.validate(form(installment_index=7, installment_count=2))

        assert result.is_valid is True
        assert result.draft.installment_index == 1
        assert result.draft.installment_count == 1

    def test_due_day_out_of_range(self, validator):
        result = validator.validate(form(due_day="32"))
        assert result.is_valid is False

    def test_unknown_group_is_warning(self, validator):
        """Test that a new group name is allowed but flagged."""
        result = validator.validate(form(group="Sicred"))

        assert result.is_valid is True
        assert result.warnings == ["Group 'Sicred' does not exist yet"]

    def test_large_amount_is_warning(self, validator):
        result = validator.validate(form(amount="250000"))
        assert result.is_valid is True
        assert len(result.warnings) == 1


class TestParse:
    """Tests for the raising entry point and the summary text."""

    def test_parse_raises_with_result(self, validator):
        with pytest.raises(BillValidationError) as exc_info:
            validator.parse(form(name=""))
        assert exc_info.value.result.is_valid is False
        assert "Bill name is required" in str(exc_info.value)

    def test_summary(self, validator):
        assert validator.get_user_friendly_summary(validator.validate(form())) == "All good."
        summary = validator.get_user_friendly_summary(validator.validate(form(name="")))
        assert summary.startswith("Please fix the following:")
