"""
Two-Stage Validation of Bill Forms

DESIGN DECISION: Raw form input is validated before the series engine
ever runs, and before any state changes. A rejected form writes nothing.

STAGE 1 - SCHEMA VALIDATION:
- Required fields present
- Amount is a number
- Integers are integers, status is a known status

STAGE 2 - SEMANTIC VALIDATION:
- Installment index within count
- A bill is not both fixed and installment
- Due day is a day of the month
- Suspiciously large amounts, unknown groups (warnings only)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them so the user can correct the form.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from bill_tracker.config import get_settings
from bill_tracker.models.bill import (
    BillDraft,
    BillStatus,
    ValidationIssue,
    ValidationResult,
)


TRUTHY = {"1", "true", "yes", "y", "on"}


class BillValidationError(ValueError):
    """A bill form failed validation; nothing was saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Invalid bill: {messages}")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _or_one(value: Optional[int]) -> int:
    return 1 if value is None else value


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return (_text(value) or "").lower() in TRUTHY


def parse_amount(value: Any) -> Decimal:
    """
    Parse a currency amount typed by the user.

    Accepts "85.50", "85,50" and numbers. Raises ValueError otherwise.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("Amount is required")
    text = str(value).strip().replace(" ", "")
    if "," in text and "." in text:
        # The last separator is the decimal one: 1.234,56 or 1,234.56
        thousands = "." if text.rfind(",") > text.rfind(".") else ","
        text = text.replace(thousands, "")
    text = text.replace(",", ".")
    try:
        amount = Decimal(text)
        if not amount.is_finite():
            raise InvalidOperation
        return amount.quantize(Decimal("0.01"))
    except InvalidOperation as exc:
        raise ValueError(f"Amount is not a number: {value!r}") from exc


class BillValidator:
    """
    Validates raw bill form input through a two-stage pipeline.

    Args:
        known_groups: Group names offered to the user. A form naming a
            group outside this list gets a warning, not an error.
    """

    def __init__(
        self,
        known_groups: Optional[Iterable[str]] = None,
        max_amount: Optional[Decimal] = None,
    ):
        self._known_groups = set(known_groups) if known_groups is not None else None
        self._max_amount = (
            max_amount if max_amount is not None else get_settings().app.max_bill_amount
        )

    def _validate_schema(
        self,
        form: Mapping[str, Any],
    ) -> tuple[dict[str, Any], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_fields, list_of_issues)
        """
        issues = []
        fields: dict[str, Any] = {}

        fields["name"] = _text(form.get("name"))
        if fields["name"] is None:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Bill name is required",
                severity="error",
            ))

        fields["group"] = _text(form.get("group"))
        if fields["group"] is None:
            issues.append(ValidationIssue(
                field="group",
                issue_type="missing",
                message="Group is required",
                severity="error",
                suggested_fix="Pick one of the existing groups",
            ))

        try:
            fields["amount"] = parse_amount(form.get("amount"))
        except ValueError as e:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_format",
                message=str(e),
                severity="error",
                suggested_fix="Type the amount using digits, e.g. 85.50",
            ))

        for key, label in (
            ("installment_index", "Current installment"),
            ("installment_count", "Total installments"),
            ("due_day", "Due day"),
        ):
            raw = _text(form.get(key))
            if raw is None:
                fields[key] = None
                continue
            try:
                fields[key] = int(raw)
            except ValueError:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="invalid_format",
                    message=f"{label} must be a whole number",
                    severity="error",
                ))

        raw_status = _text(form.get("status")) or BillStatus.PENDING.value
        try:
            fields["status"] = BillStatus(raw_status.lower())
        except ValueError:
            issues.append(ValidationIssue(
                field="status",
                issue_type="invalid_value",
                message=f"Unknown status: {raw_status}",
                severity="error",
            ))

        fields["is_fixed"] = _flag(form.get("is_fixed"))
        fields["is_installment"] = _flag(form.get("is_installment"))
        fields["notes"] = _text(form.get("notes"))
        fields["category"] = _text(form.get("category"))

        for key, limit in (("name", 200), ("group", 100), ("notes", 1000), ("category", 100)):
            if fields[key] is not None and len(fields[key]) > limit:
                issues.append(ValidationIssue(
                    field=key,
                    issue_type="too_long",
                    message=f"{key.capitalize()} is longer than {limit} characters",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return (fields if is_valid else {}), issues

    def _validate_semantic(
        self,
        fields: dict[str, Any],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Returns: list_of_issues
        """
        issues = []

        if fields["amount"] < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
            ))
        elif fields["amount"] > self._max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount {fields['amount']} is unusually large",
                severity="warning",
                suggested_fix="Check for a misplaced decimal separator",
            ))

        if fields["is_fixed"] and fields["is_installment"]:
            issues.append(ValidationIssue(
                field="is_fixed",
                issue_type="conflict",
                message="A bill cannot be both fixed and installment",
                severity="error",
                suggested_fix="Untick one of the two options",
            ))

        if fields["is_installment"]:
            index = _or_one(fields["installment_index"])
            count = _or_one(fields["installment_count"])
            if index < 1 or count < 1:
                issues.append(ValidationIssue(
                    field="installment_index",
                    issue_type="invalid_value",
                    message="Installment numbers start at 1",
                    severity="error",
                ))
            elif index > count:
                issues.append(ValidationIssue(
                    field="installment_index",
                    issue_type="inconsistent",
                    message=f"Installment {index} is past the total of {count}",
                    severity="error",
                ))

        due_day = fields["due_day"]
        if due_day is not None and not 1 <= due_day <= 31:
            issues.append(ValidationIssue(
                field="due_day",
                issue_type="invalid_value",
                message="Due day must be between 1 and 31",
                severity="error",
            ))

        if self._known_groups is not None and fields["group"] not in self._known_groups:
            issues.append(ValidationIssue(
                field="group",
                issue_type="unknown_group",
                message=f"Group '{fields['group']}' does not exist yet",
                severity="warning",
                suggested_fix="It will be added to the group list",
            ))

        return issues

    def validate(self, form: Mapping[str, Any]) -> ValidationResult:
        """Run both stages; the draft is attached only when valid."""
        fields, issues = self._validate_schema(form)
        schema_valid = not any(i.severity == "error" for i in issues)

        semantic_valid = False
        if schema_valid:
            issues.extend(self._validate_semantic(fields))
            semantic_valid = not any(i.severity == "error" for i in issues)

        is_valid = schema_valid and semantic_valid
        draft = None
        if is_valid:
            draft = BillDraft(
                name=fields["name"],
                amount=fields["amount"],
                group=fields["group"],
                is_fixed=fields["is_fixed"],
                is_installment=fields["is_installment"],
                installment_index=_or_one(fields["installment_index"]) if fields["is_installment"] else 1,
                installment_count=_or_one(fields["installment_count"]) if fields["is_installment"] else 1,
                status=fields["status"],
                notes=fields["notes"],
                category=fields["category"],
                due_day=fields["due_day"],
            )

        return ValidationResult(
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=is_valid,
            issues=issues,
            draft=draft,
        )

    def parse(self, form: Mapping[str, Any]) -> BillDraft:
        """Validate and return the draft, or raise BillValidationError."""
        result = self.validate(form)
        if not result.is_valid:
            raise BillValidationError(result)
        return result.draft

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One short message for the form."""
        if result.is_valid and not result.issues:
            return "All good."
        errors = [i for i in result.issues if i.severity == "error"]
        if errors:
            lines = ["Please fix the following:"]
            lines.extend(f"- {issue.message}" for issue in errors)
            return "\n".join(lines)
        lines = ["Saved with warnings:"]
        lines.extend(f"- {message}" for message in result.warnings)
        return "\n".join(lines)
