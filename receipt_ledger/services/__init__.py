"""Services package."""

from receipt_ledger.services.documents import (
    PageRasterizer,
    PdfCropper,
    RasterImage,
)
from receipt_ledger.services.extraction import (
    GeminiReceiptExtractor,
    parse_json_response,
)
from receipt_ledger.services.ledger import (
    LedgerAck,
    LedgerApiClient,
    LedgerSessionManager,
)

__all__ = [
    # Document services
    "PageRasterizer",
    "PdfCropper",
    "RasterImage",
    # Extraction services
    "GeminiReceiptExtractor",
    "parse_json_response",
    # Ledger services
    "LedgerAck",
    "LedgerApiClient",
    "LedgerSessionManager",
]
