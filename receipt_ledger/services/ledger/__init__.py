"""Ledger API services package."""

from receipt_ledger.services.ledger.client import (
    DOCUMENT_ID_PATHS,
    TOKEN_PATHS,
    LedgerAck,
    LedgerApiClient,
    lookup_first,
)
from receipt_ledger.services.ledger.session import (
    DossierScope,
    LedgerSession,
    LedgerSessionManager,
)

__all__ = [
    "DOCUMENT_ID_PATHS",
    "TOKEN_PATHS",
    "DossierScope",
    "LedgerAck",
    "LedgerApiClient",
    "LedgerSession",
    "LedgerSessionManager",
    "lookup_first",
]
