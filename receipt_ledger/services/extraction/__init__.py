"""Extraction services package."""

from receipt_ledger.services.extraction.gemini_service import (
    EXTRACTION_PROMPT,
    GeminiReceiptExtractor,
)
from receipt_ledger.services.extraction.response_parser import (
    extract_response_text,
    parse_json_response,
)

__all__ = [
    "EXTRACTION_PROMPT",
    "GeminiReceiptExtractor",
    "extract_response_text",
    "parse_json_response",
]
