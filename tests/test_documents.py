"""
Tests for page rasterization and the cropping sidecar.

poppler is not required: PDF rendering is exercised with a missing
installation, image uploads go through Pillow.
"""

import asyncio
import pytest
from io import BytesIO

import httpx
from PIL import Image

from receipt_ledger.config import CropperSettings
from receipt_ledger.errors import UpstreamTransportError, ValidationError
from receipt_ledger.services.documents import PageRasterizer, PdfCropper, is_pdf


def image_bytes(fmt: str = "PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (8, 8), "white").save(buffer, format=fmt)
    return buffer.getvalue()


class TestRasterizer:
    """Tests for PageRasterizer."""
    
    def test_is_pdf(self):
        """Test PDF detection by magic bytes."""
        assert is_pdf(b"%PDF-1.7\n...")
        assert not is_pdf(image_bytes())
        assert not is_pdf(b"")
    
    @pytest.mark.parametrize("fmt, media_type", [("PNG", "image/png"), ("JPEG", "image/jpeg")])
    def test_images_pass_through(self, fmt, media_type):
        """Test image uploads are sent to the extractor unchanged."""
        content = image_bytes(fmt)
        image = asyncio.run(PageRasterizer().rasterize(content))
        assert image.data == content
        assert image.media_type == media_type
    
    def test_unsupported_image_format(self):
        """Test readable but unsupported images are rejected."""
        with pytest.raises(ValidationError, match="Unsupported image format"):
            asyncio.run(PageRasterizer().rasterize(image_bytes("BMP")))
    
    def test_garbage_rejected(self):
        """Test bytes that are neither PDF nor image."""
        with pytest.raises(ValidationError) as info:
            asyncio.run(PageRasterizer().rasterize(b"hello world"))
        assert info.value.field == "pdf"
    
    def test_empty_upload(self):
        """Test nothing to render."""
        with pytest.raises(ValidationError):
            asyncio.run(PageRasterizer().rasterize(b""))
    
    def test_missing_poppler(self):
        """Test a PDF with no renderer available fails cleanly."""
        rasterizer = PageRasterizer(poppler_path="/nonexistent/poppler")
        with pytest.raises(UpstreamTransportError, match="poppler is not installed"):
            asyncio.run(rasterizer.rasterize(b"%PDF-1.4\n%%EOF"))


class TestCropper:
    """Tests for the optional cropping sidecar."""
    
    def _cropper(self, handler, enabled: bool = True) -> PdfCropper:
        settings = CropperSettings(enabled=enabled, url="http://cropper.test/", timeout_ms=1000)
        return PdfCropper(settings, transport=httpx.MockTransport(handler))
    
    def test_cropped_pdf_returned(self):
        """Test the sidecar answer replaces the upload."""
        seen = []
        
        def handler(request):
            seen.append(request)
            return httpx.Response(200, content=b"%PDF-cropped")
        
        cropper = self._cropper(handler)
        assert asyncio.run(cropper.crop(b"%PDF-original", "t.pdf")) == b"%PDF-cropped"
        assert str(seen[0].url) == "http://cropper.test/api/crop"
        assert b'name="pdf"' in seen[0].content
        assert cropper.last_error is None
    
    def test_disabled_is_noop(self):
        """Test no request is made when cropping is off."""
        def handler(request):
            raise AssertionError("cropper must not be called")
        
        cropper = self._cropper(handler, enabled=False)
        assert asyncio.run(cropper.crop(b"%PDF-original")) == b"%PDF-original"
    
    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="crash"),
        httpx.Response(200, content=b""),
    ])
    def test_failures_fall_back_to_original(self, response):
        """Test a failing sidecar never fails the upload."""
        cropper = self._cropper(lambda request: response)
        assert asyncio.run(cropper.crop(b"%PDF-original")) == b"%PDF-original"
        assert cropper.last_error
    
    def test_timeout_falls_back(self):
        """Test a timed out sidecar."""
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)
        
        cropper = self._cropper(handler)
        assert asyncio.run(cropper.crop(b"%PDF-original")) == b"%PDF-original"
        assert "timed out" in cropper.last_error


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
