"""
Data Models Package

This package contains all Pydantic models used in the Bill Tracker system.
All data flowing through the system must conform to these schemas.
"""

from bill_tracker.models.bill import (
    Bill,
    BillDraft,
    BillStatus,
    MonthlyStats,
    StatusFilter,
    SyncState,
    SyncStatus,
    ValidationIssue,
    ValidationResult,
    legacy_series_id,
)
from bill_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Bill models
    "Bill",
    "BillDraft",
    "BillStatus",
    "MonthlyStats",
    "StatusFilter",
    "SyncState",
    "SyncStatus",
    "ValidationIssue",
    "ValidationResult",
    "legacy_series_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
