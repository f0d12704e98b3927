"""
Data Models Package

This package contains all Pydantic models used by the receipt pipeline.
All data flowing through the system must conform to these schemas.
"""

from receipt_ledger.models.receipt import (
    DEFAULT_SUPPLIER_ACCOUNT,
    ExtractionResult,
    SpendingCategory,
    Suggestion,
)
from receipt_ledger.models.ledger import (
    LedgerConnection,
    LedgerEntry,
    LedgerLine,
    VatSpec,
)
from receipt_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Receipt models
    "DEFAULT_SUPPLIER_ACCOUNT",
    "ExtractionResult",
    "SpendingCategory",
    "Suggestion",
    # Ledger models
    "LedgerConnection",
    "LedgerEntry",
    "LedgerLine",
    "VatSpec",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
