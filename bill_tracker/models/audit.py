"""
Audit Models for Bill Tracker

Every mutation of the bill collection and every exchange with the remote
store is recorded as an event. This provides:
1. Traceability of what changed locally and when
2. Debugging information when local and remote drift apart
3. A short activity history for the UI

DESIGN DECISION: Audit events are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Startup
    LOCAL_SNAPSHOT_LOADED = "local_snapshot_loaded"
    SEED_DATA_LOADED = "seed_data_loaded"
    REMOTE_ADOPTED = "remote_adopted"
    LOCAL_PUSHED = "local_pushed"
    SEED_PUSHED = "seed_pushed"

    # Bill mutations
    BILLS_CREATED = "bills_created"
    BILLS_UPDATED = "bills_updated"
    BILL_DELETED = "bill_deleted"
    STATUS_TOGGLED = "status_toggled"
    VALIDATION_FAILED = "validation_failed"

    # Group mutations
    GROUP_ADDED = "group_added"
    GROUP_RENAMED = "group_renamed"
    GROUP_DELETED = "group_deleted"

    # Remote sync
    REMOTE_SYNCED = "remote_synced"
    REMOTE_SYNC_FAILED = "remote_sync_failed"
    FULL_SYNC_COMPLETED = "full_sync_completed"


class AuditSeverity(str, Enum):
    """Maps onto the structlog level used for the event."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    Something that happened to the bill collection or its sync.

    Startup decisions, user mutations and remote outcomes each produce one.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Subject: a bill, a group, the collection or the remote
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'bill', 'group', 'collection')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID or name of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Flat, JSON-safe fields for the structlog line."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Factory methods for the events the tracker emits.

    Usage:
        event = AuditEventBuilder.status_toggled(bill_id, "paid")
        event = AuditEventBuilder.remote_sync_failed("upsert", message, error)
    """

    @staticmethod
    def local_loaded(bill_count: int, from_snapshot: bool) -> AuditEvent:
        if from_snapshot:
            return AuditEvent(
                event_type=AuditEventType.LOCAL_SNAPSHOT_LOADED,
                entity_type="collection",
                description=f"Loaded {bill_count} bills from local snapshot",
                details={"bill_count": bill_count},
            )
        return AuditEvent(
            event_type=AuditEventType.SEED_DATA_LOADED,
            entity_type="collection",
            description=f"No local snapshot, loaded {bill_count} seed bills",
            details={"bill_count": bill_count},
        )

    @staticmethod
    def remote_adopted(bill_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_ADOPTED,
            entity_type="collection",
            description=f"Adopted {bill_count} bills from remote store",
            details={"bill_count": bill_count},
        )

    @staticmethod
    def collection_pushed(bill_count: int, seed: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SEED_PUSHED if seed else AuditEventType.LOCAL_PUSHED,
            entity_type="collection",
            description=(
                f"Remote store empty, pushed {bill_count} "
                f"{'seed' if seed else 'local'} bills"
            ),
            details={"bill_count": bill_count},
        )

    @staticmethod
    def bills_created(series_id: UUID, month_refs: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_CREATED,
            entity_type="series",
            entity_id=str(series_id),
            description=f"Created {len(month_refs)} bill rows",
            details={"month_refs": month_refs},
            is_user_action=True,
        )

    @staticmethod
    def bills_updated(bill_id: UUID, updated: int, inserted: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILLS_UPDATED,
            entity_type="bill",
            entity_id=str(bill_id),
            description=f"Edit cascaded to {updated} rows, generated {inserted} rows",
            details={"updated": updated, "inserted": inserted},
            is_user_action=True,
        )

    @staticmethod
    def bill_deleted(bill_id: UUID, name: str, month_ref: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_DELETED,
            entity_type="bill",
            entity_id=str(bill_id),
            description=f"Bill deleted: {name} ({month_ref})",
            is_user_action=True,
        )

    @staticmethod
    def status_toggled(bill_id: UUID, status: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATUS_TOGGLED,
            entity_type="bill",
            entity_id=str(bill_id),
            description=f"Bill marked {status}",
            details={"status": status},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            description=f"Bill form rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def group_changed(
        event_type: AuditEventType,
        group: str,
        affected: int,
        new_name: Optional[str] = None,
    ) -> AuditEvent:
        details: dict[str, Any] = {"affected_bills": affected}
        if new_name is not None:
            details["new_name"] = new_name
        return AuditEvent(
            event_type=event_type,
            entity_type="group",
            entity_id=group,
            description=f"Group {event_type.value.split('_')[1]}: {group}",
            details=details,
            is_user_action=True,
        )

    @staticmethod
    def remote_synced(operation: str, row_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNCED,
            severity=AuditSeverity.DEBUG,
            entity_type="remote",
            description=f"Remote {operation} completed",
            details={"operation": operation, "row_count": row_count},
        )

    @staticmethod
    def remote_sync_failed(operation: str, user_message: str, error: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REMOTE_SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="remote",
            description=user_message,
            details={"operation": operation},
            error_message=error,
        )

    @staticmethod
    def full_sync_completed(row_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FULL_SYNC_COMPLETED,
            entity_type="remote",
            description=f"Full sync pushed {row_count} bills",
            details={"row_count": row_count},
            is_user_action=True,
        )
