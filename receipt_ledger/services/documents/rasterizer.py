"""
Page rasterization.

PDF receipts are turned into one PNG page with pdf2image (poppler)
before extraction. Uploads that are already images are checked with
Pillow and passed through.

pdf2image keeps its intermediate files in a temporary location that it
removes itself; the render is bounded by a timeout.
"""

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from pdf2image import convert_from_bytes
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)
from PIL import Image, UnidentifiedImageError

from receipt_ledger.config.settings import AppSettings
from receipt_ledger.errors import UpstreamTransportError, ValidationError


PDF_MAGIC = b"%PDF"

# Image formats the extractor accepts as-is
PASSTHROUGH_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "WEBP": "image/webp",
}


@dataclass(frozen=True)
class RasterImage:
    """One page image ready for the extractor."""
    data: bytes
    media_type: str


def is_pdf(content: bytes) -> bool:
    return content.lstrip()[:4] == PDF_MAGIC


def detect_media_type(content: bytes) -> str:
    """
    Media type of an upload: application/pdf, or one of the image types
    the extractor accepts.
    
    Raises:
        ValidationError: empty, unreadable or unsupported upload
    """
    if not content:
        raise ValidationError("pdf", "Empty upload")
    if is_pdf(content):
        return "application/pdf"
    
    try:
        with Image.open(BytesIO(content)) as image:
            image.verify()
            image_format: Optional[str] = image.format
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError("pdf", "Upload is neither a PDF nor a readable image") from None
    
    media_type = PASSTHROUGH_FORMATS.get(image_format or "")
    if media_type is None:
        raise ValidationError("pdf", f"Unsupported image format: {image_format}")
    return media_type


class PageRasterizer:
    """Renders a single page of a PDF (or validates an image upload)."""
    
    SERVICE_NAME = "poppler"
    
    def __init__(
        self,
        poppler_path: Optional[str] = None,
        dpi: int = 200,
        timeout_seconds: float = 30.0,
    ):
        self._poppler_path = poppler_path
        self._dpi = dpi
        self._timeout = timeout_seconds
    
    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PageRasterizer":
        return cls(
            poppler_path=settings.poppler_path,
            dpi=settings.rasterizer_dpi,
            timeout_seconds=settings.rasterizer_timeout_seconds,
        )
    
    async def rasterize(self, content: bytes, page_index: int = 0) -> RasterImage:
        """
        Return page `page_index` (0-based) as an image.
        
        Raises:
            ValidationError: empty upload or unsupported file type
            UpstreamTransportError: poppler failed, is missing or timed out
        """
        if page_index < 0:
            raise ValidationError("page_index", "Page index must be >= 0")
        
        media_type = detect_media_type(content)
        if media_type == "application/pdf":
            return await asyncio.to_thread(self._render_pdf_page, content, page_index + 1)
        return RasterImage(data=content, media_type=media_type)
    
    def _render_pdf_page(self, content: bytes, page_number: int) -> RasterImage:
        try:
            pages = convert_from_bytes(
                content,
                dpi=self._dpi,
                first_page=page_number,
                last_page=page_number,
                fmt="png",
                poppler_path=self._poppler_path,
                timeout=self._timeout,
            )
        except PDFPopplerTimeoutError as e:
            raise UpstreamTransportError(self.SERVICE_NAME, "rasterization timed out") from e
        except PDFInfoNotInstalledError as e:
            raise UpstreamTransportError(self.SERVICE_NAME, "poppler is not installed") from e
        except (PDFPageCountError, PDFSyntaxError) as e:
            raise UpstreamTransportError(
                self.SERVICE_NAME,
                "could not read the PDF",
                body=str(e),
            ) from e
        
        if not pages:
            raise UpstreamTransportError(self.SERVICE_NAME, f"page {page_number} was not rendered")
        
        buffer = BytesIO()
        pages[0].save(buffer, format="PNG")
        return RasterImage(data=buffer.getvalue(), media_type="image/png")
