"""
Core Data Models for Bill Tracker

Every bill row, draft and status object passes through these schemas,
whether it comes from the form, the local snapshot or the remote table.

DESIGN DECISION: A bill is stored as one row per occurrence-month.
Recurring bills are therefore a *series* of rows that share a series_id,
not a single row with a recurrence rule.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import NAMESPACE_URL, UUID, uuid4, uuid5

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from bill_tracker.config.settings import MONTH_TOKEN_PATTERN


# Namespace for series ids derived from legacy (group, name) identity
LEGACY_SERIES_NAMESPACE = uuid5(NAMESPACE_URL, "bill-tracker:series")


def legacy_series_id(name: str, group: str) -> UUID:
    """
    Derive the series id of a row that was stored without one.

    Older rows identified their series by (name, group) only. Deriving the
    id deterministically keeps those rows grouped exactly as before.
    """
    return uuid5(LEGACY_SERIES_NAMESPACE, f"{group}\x1f{name}")


# =============================================================================
# ENUMS
# =============================================================================

class BillStatus(str, Enum):
    """Payment status of a single monthly row."""
    PENDING = "pending"
    PAID = "paid"

    def toggled(self) -> "BillStatus":
        return BillStatus.PENDING if self == BillStatus.PAID else BillStatus.PAID


class StatusFilter(str, Enum):
    """Status filter applied to the monthly list."""
    ALL = "all"
    PENDING = "pending"
    PAID = "paid"


class SyncState(str, Enum):
    """
    Lifecycle of the bill collection with respect to the remote store.

    UNINITIALIZED -> LOCAL_LOADED -> RECONCILING -> SYNCED | SYNC_ERROR
    """
    UNINITIALIZED = "uninitialized"
    LOCAL_LOADED = "local_loaded"
    RECONCILING = "reconciling"
    SYNCED = "synced"
    SYNC_ERROR = "sync_error"


# =============================================================================
# CORE BILL MODEL
# =============================================================================

class Bill(BaseModel):
    """
    One bill occurrence in one month.

    Installment fields are present only on installment bills.
    A row without a series_id (legacy data) is assigned one derived from
    its (name, group) pair.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique row ID"
    )
    series_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by every row of one recurring obligation"
    )
    month_ref: str = Field(
        ...,
        pattern=MONTH_TOKEN_PATTERN,
        description="Monthly bucket, YYYY-MM"
    )

    # Shared series fields
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display label"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount due in this month"
    )
    group: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Payer/category bucket"
    )
    is_fixed: bool = False
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    category: Optional[str] = Field(
        default=None,
        max_length=100,
    )
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of the month the bill is due"
    )

    # Per-row state
    is_installment: bool = False
    installment_index: Optional[int] = Field(default=None, ge=1)
    installment_count: Optional[int] = Field(default=None, ge=1)
    status: BillStatus = BillStatus.PENDING

    @model_validator(mode='after')
    def validate_installments(self) -> 'Bill':
        """Installment numbers exist exactly when the row is an installment."""
        if self.is_installment:
            if self.installment_index is None or self.installment_count is None:
                raise ValueError("Installment bills need both installment index and count")
            if self.installment_index > self.installment_count:
                raise ValueError("Installment index cannot exceed installment count")
        elif self.installment_index is not None or self.installment_count is not None:
            raise ValueError("Only installment bills carry installment numbers")

        if self.series_id is None:
            self.series_id = legacy_series_id(self.name, self.group)
        return self

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        """Key used to avoid generating two rows for the same month."""
        return (self.name, self.group, self.month_ref)

    @property
    def installment_label(self) -> str:
        if not self.is_installment:
            return "-"
        return f"{self.installment_index}/{self.installment_count}"


class BillDraft(BaseModel):
    """
    Validated base fields of a save intent (create or edit).

    Built by the validator from raw form input; the series engine only
    ever sees drafts that passed validation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    group: str = Field(..., min_length=1, max_length=100)
    is_fixed: bool = False
    is_installment: bool = False
    installment_index: int = Field(
        default=1,
        ge=1,
        description="First installment number to generate"
    )
    installment_count: int = Field(
        default=1,
        ge=1,
        description="Total number of installments"
    )
    status: BillStatus = BillStatus.PENDING
    notes: Optional[str] = Field(default=None, max_length=1000)
    category: Optional[str] = Field(default=None, max_length=100)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)

    @model_validator(mode='after')
    def validate_recurrence(self) -> 'BillDraft':
        """A bill is either open-ended or fixed-count, never both."""
        if self.is_fixed and self.is_installment:
            raise ValueError("A bill cannot be both fixed and installment")
        if self.is_installment and self.installment_index > self.installment_count:
            raise ValueError("Installment index cannot exceed installment count")
        return self

    def installment_fields(self, index: Optional[int] = None) -> dict:
        """Installment columns for a row built from this draft."""
        if not self.is_installment:
            return {
                "is_installment": False,
                "installment_index": None,
                "installment_count": None,
            }
        return {
            "is_installment": True,
            "installment_index": index if index is not None else self.installment_index,
            "installment_count": self.installment_count,
        }

    def shared_fields(self) -> dict:
        """Fields that cascade to every future row of the series."""
        return {
            "name": self.name,
            "amount": self.amount,
            "group": self.group,
            "is_fixed": self.is_fixed,
            "notes": self.notes,
            "category": self.category,
            "due_day": self.due_day,
        }


# =============================================================================
# DERIVED MODELS
# =============================================================================

class MonthlyStats(BaseModel):
    """Totals of one month, extra group excluded."""

    total: Decimal = Decimal("0")
    paid: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")


class SyncStatus(BaseModel):
    """What the sync indicator shows."""

    state: SyncState
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    error_message: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error_message is not None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """One problem found in a bill form."""

    field: str = Field(
        ...,
        description="Form field the issue refers to"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'conflict')"
    )
    message: str = Field(
        ...,
        description="Message shown next to the form"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="What the user can do about it"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation of a bill form.

    schema_valid covers required fields and types; semantic_valid
    covers installment numbers, recurrence conflicts and ranges.
    """

    validated_at: datetime = Field(
        default_factory=datetime.now
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="Errors and warnings, in the order found"
    )

    # Set only when validation passed
    draft: Optional[BillDraft] = None

    @property
    def has_errors(self) -> bool:
        """True when at least one issue blocks saving."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
