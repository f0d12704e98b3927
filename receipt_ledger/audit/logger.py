"""
Audit Logger

Every significant step of an upload or a submission is logged as a
structured JSON event. Nothing is persisted by this package; the log
stream is the audit trail.

The audit logger:
- Never raises (a logging failure must not fail a submission)
- Supports correlation IDs to trace related events
"""

from uuid import UUID, uuid4

import structlog

from receipt_ledger.models.audit import AuditEvent, AuditSeverity


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


class AuditLogger:
    """
    Central audit logging service.
    
    Keeps the events it logged in `events` when `keep_events` is set,
    which the tests and the review screen use to show what happened.
    """
    
    def __init__(self, keep_events: bool = False):
        self._logger = structlog.get_logger("receipt_ledger.audit")
        self._keep_events = keep_events
        self.events: list[AuditEvent] = []
    
    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        if self._keep_events:
            self.events.append(event)
        
        log_dict = event.to_log_dict()
        try:
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Logging must not break the pipeline
            structlog.get_logger().error(
                "audit_log_failed",
                error=str(e),
                event_id=str(event.event_id),
            )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.
    
    Use this at the start of a new upload or submission and pass it
    through all subsequent operations.
    """
    return uuid4()
