"""
Audit Logger

DESIGN DECISION: Every change to the bill collection and every remote
exchange is logged. This provides:
1. Complete traceability
2. Debugging capability when local and remote drift apart
3. A short activity history the user can look at

The audit logger:
- Never blocks or fails the main flow
- Writes structured JSON lines through structlog
- Keeps the most recent events in memory for the UI
"""

import logging
from collections import deque
from typing import Optional
from uuid import UUID

import structlog

from bill_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(debug: bool = False) -> None:
    """Route structlog output through the stdlib root logger."""
    logging.basicConfig(
        format="%(message)s",
        level=logging.DEBUG if debug else logging.INFO,
    )


def get_logger(name: Optional[str] = None):
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Logs events to:
    1. Structured local log (for debugging)
    2. A bounded in-memory history (for the activity panel)
    """

    def __init__(self, history_size: int = 200):
        self._logger = get_logger("bill_tracker.audit")
        self._history: deque[AuditEvent] = deque(maxlen=history_size)

    @property
    def history(self) -> list[AuditEvent]:
        """Recent events, oldest first."""
        return list(self._history)

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._history.append(event)
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_status_toggled(self, bill_id: UUID, status: str) -> None:
        self.log(AuditEventBuilder.status_toggled(bill_id=bill_id, status=status))

    def log_remote_synced(self, operation: str, row_count: int) -> None:
        self.log(AuditEventBuilder.remote_synced(operation=operation, row_count=row_count))

    def log_remote_sync_failed(
        self,
        operation: str,
        user_message: str,
        error: str,
    ) -> None:
        """Log a remote failure; the local change it belonged to stays."""
        self.log(AuditEventBuilder.remote_sync_failed(
            operation=operation,
            user_message=user_message,
            error=error,
        ))
