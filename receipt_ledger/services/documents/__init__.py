"""Document services package."""

from receipt_ledger.services.documents.cropper import PdfCropper
from receipt_ledger.services.documents.rasterizer import (
    PageRasterizer,
    RasterImage,
    detect_media_type,
    is_pdf,
)

__all__ = [
    "PageRasterizer",
    "PdfCropper",
    "RasterImage",
    "detect_media_type",
    "is_pdf",
]
