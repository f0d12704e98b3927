"""
Error taxonomy for the receipt-to-ledger pipeline.

Every failure that reaches a caller is one of these. Each carries a
human-readable message and can be turned into a structured payload
with `to_dict()`. Payloads never contain stack traces or credentials.

    ReceiptLedgerError
    ├── ValidationError          missing/invalid field, bad category×VAT, bad date
    ├── UpstreamParseError       extractor text has no recoverable JSON
    ├── UpstreamTransportError   non-success status or network failure upstream
    └── SessionError             authentication or dossier scope rejected

None of these are retried by the pipeline.
"""

from typing import Any, Optional


SNIPPET_LENGTH = 800


def snippet(text: Any, length: int = SNIPPET_LENGTH) -> str:
    """Shorten upstream text for error reports."""
    value = "" if text is None else str(text)
    if len(value) <= length:
        return value
    return value[:length] + "…"


class ReceiptLedgerError(Exception):
    """Base exception for all pipeline errors."""

    error_type = "error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(message)

    def with_details(self, **details: Any) -> "ReceiptLedgerError":
        """Attach context (e.g. a document id already uploaded) and return self."""
        self.details.update(details)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Structured failure for the caller."""
        payload: dict[str, Any] = {
            "ok": False,
            "type": self.error_type,
            "error": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ReceiptLedgerError):
    """A required field is missing or invalid."""

    error_type = "validation_error"

    def __init__(self, field: str, message: str, details: Optional[dict[str, Any]] = None):
        self.field = field
        super().__init__(message, details)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["field"] = self.field
        return payload


class UpstreamParseError(ReceiptLedgerError):
    """The extractor answered, but no JSON object could be recovered."""

    error_type = "upstream_parse_error"

    def __init__(self, message: str, raw_text: Any = None):
        self.snippet = snippet(raw_text)
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["snippet"] = self.snippet
        return payload


class UpstreamTransportError(ReceiptLedgerError):
    """An external call failed at the transport or HTTP level."""

    error_type = "upstream_transport_error"

    def __init__(
        self,
        service: str,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ):
        self.service = service
        self.status_code = status_code
        self.body_snippet = snippet(body)
        prefix = f"{service} ({status_code})" if status_code is not None else service
        super().__init__(f"{prefix}: {message}")

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["service"] = self.service
        payload["status_code"] = self.status_code
        if self.body_snippet:
            payload["body"] = self.body_snippet
        return payload


class SessionError(ReceiptLedgerError):
    """The ledger API refused authentication or the dossier scope."""

    error_type = "session_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        self.status_code = status_code
        self.body_snippet = snippet(body)
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["status_code"] = self.status_code
        if self.body_snippet:
            payload["body"] = self.body_snippet
        return payload
