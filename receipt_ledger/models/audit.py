"""
Audit Models for Receipt Ledger

Every significant step of an upload or a submission produces an audit
event. Events are written to the structured log only; this package keeps
no persistent store. A correlation id ties together all events of one
upload or one submission.

CRITICAL: Events never carry credentials or session tokens.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    
    Every step in the receipt pipeline has its own event type.
    """
    # Upload
    UPLOAD_RECEIVED = "upload_received"
    CROP_FALLBACK = "crop_fallback"
    DOCUMENT_UPLOADED = "document_uploaded"
    
    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    SUGGESTION_MADE = "suggestion_made"
    
    # Submission
    SUBMISSION_RECEIVED = "submission_received"
    VALIDATION_FAILED = "validation_failed"
    ENTRY_BUILT = "entry_built"
    ENTRY_POSTED = "entry_posted"
    
    # Ledger session
    SESSION_AUTHENTICATED = "session_authenticated"
    SESSION_REJECTED = "session_rejected"
    DOSSIER_OPENED = "dossier_opened"
    CONNECTION_UPDATED = "connection_updated"
    
    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.
    
    This is the core unit of our audit trail.
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
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )
    
    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'document', 'entry', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity, e.g. the GED document id"
    )
    
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one upload or submission"
    )
    
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    
    error_message: Optional[str] = None
    
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by an operator action?"
    )
    
    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.
    
    Usage:
        event = AuditEventBuilder.upload_received("ticket.pdf", 1024, correlation_id)
        event = AuditEventBuilder.entry_posted(entry.reference_id, entry.journal, correlation_id)
    """
    
    @staticmethod
    def upload_received(
        filename: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UPLOAD_RECEIVED,
            entity_type="document",
            correlation_id=correlation_id,
            description=f"Receipt uploaded: {filename}",
            details={
                "filename": filename,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )
    
    @staticmethod
    def crop_fallback(
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CROP_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="document",
            correlation_id=correlation_id,
            description="Cropper failed, using the original PDF",
            error_message=reason,
        )
    
    @staticmethod
    def document_uploaded(
        document_id: str,
        filename: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOCUMENT_UPLOADED,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Document stored in GED: {filename}",
            details={"filename": filename},
        )
    
    @staticmethod
    def extraction_completed(
        document_id: Optional[str],
        missing_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            severity=AuditSeverity.WARNING if missing_fields else AuditSeverity.INFO,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description="Receipt fields extracted",
            details={"missing_fields": missing_fields},
        )
    
    @staticmethod
    def extraction_failed(
        document_id: Optional[str],
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description="Receipt extraction failed",
            error_message=error_message,
        )
    
    @staticmethod
    def suggestion_made(
        document_id: Optional[str],
        category: Optional[str],
        supplier_account: str,
        vat_rate: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUGGESTION_MADE,
            entity_type="document",
            entity_id=document_id,
            correlation_id=correlation_id,
            description=f"Suggested category: {category or 'none'}",
            details={
                "category": category,
                "supplier_account": supplier_account,
                "vat_rate": vat_rate,
            },
        )
    
    @staticmethod
    def submission_received(
        reference_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_RECEIVED,
            entity_type="entry",
            entity_id=reference_id,
            correlation_id=correlation_id,
            description="Operator submitted a receipt for posting",
            is_user_action=True,
        )
    
    @staticmethod
    def validation_failed(
        field: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            correlation_id=correlation_id,
            description=f"Validation failed on {field}",
            details={"field": field},
            error_message=message,
        )
    
    @staticmethod
    def entry_built(
        reference_id: str,
        line_count: int,
        total: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_BUILT,
            entity_type="entry",
            entity_id=reference_id,
            correlation_id=correlation_id,
            description=f"Ledger entry built with {line_count} lines",
            details={"line_count": line_count, "total": total},
        )
    
    @staticmethod
    def entry_posted(
        reference_id: str,
        journal: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_POSTED,
            entity_type="entry",
            entity_id=reference_id,
            correlation_id=correlation_id,
            description=f"Ledger entry posted to journal {journal}",
            details={"journal": journal},
        )
    
    @staticmethod
    def session_authenticated(base_url: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_AUTHENTICATED,
            entity_type="session",
            description="Authenticated against the ledger API",
            details={"base_url": base_url},
        )
    
    @staticmethod
    def session_rejected(
        stage: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_REJECTED,
            severity=AuditSeverity.ERROR,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Ledger session rejected during {stage}",
            details={"stage": stage},
            error_message=error_message,
        )
    
    @staticmethod
    def dossier_opened(
        tenant_code: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DOSSIER_OPENED,
            entity_type="session",
            entity_id=tenant_code,
            correlation_id=correlation_id,
            description=f"Dossier session opened: {tenant_code}",
        )
    
    @staticmethod
    def connection_updated(base_url: str, tenant_code: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONNECTION_UPDATED,
            entity_type="session",
            description="Ledger connection updated, cached session dropped",
            details={"base_url": base_url, "tenant_code": tenant_code},
            is_user_action=True,
        )
    
    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="service",
            correlation_id=correlation_id,
            description=f"External service error: {service}",
            details={"service": service},
            error_message=error_message,
        )
