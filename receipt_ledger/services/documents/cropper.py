"""
Optional PDF cropping sidecar.

When enabled, the uploaded PDF is sent to `{CROPPER_URL}/api/crop` and the
cropped PDF it returns is used for both the GED upload and extraction.
Cropping is best effort: any failure falls back to the original bytes.
"""

from typing import Optional

import httpx
import structlog

from receipt_ledger.config.settings import CropperSettings
from receipt_ledger.errors import UpstreamTransportError


logger = structlog.get_logger(__name__)


class PdfCropper:
    """Client for the cropping sidecar."""
    
    SERVICE_NAME = "cropper"
    
    def __init__(
        self,
        settings: CropperSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._transport = transport
        # Reason for the last fallback, for the audit trail
        self.last_error: Optional[str] = None
    
    @property
    def enabled(self) -> bool:
        return self._settings.is_active
    
    async def crop(self, content: bytes, filename: str = "ticket.pdf") -> bytes:
        """Cropped PDF, or `content` unchanged when disabled or on failure."""
        self.last_error = None
        if not self.enabled:
            return content
        
        try:
            return await self._request_crop(content, filename)
        except UpstreamTransportError as e:
            self.last_error = str(e)
            logger.warning("cropper_fallback_original", error=str(e), filename=filename)
            return content
    
    async def _request_crop(self, content: bytes, filename: str) -> bytes:
        safe_name = (filename or "ticket.pdf").replace('"', "")
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self._settings.url}/api/crop",
                    files={"pdf": (safe_name, content, "application/pdf")},
                )
        except httpx.TimeoutException as e:
            raise UpstreamTransportError(self.SERVICE_NAME, "request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamTransportError(self.SERVICE_NAME, f"request failed: {e}") from e
        
        if not response.is_success:
            raise UpstreamTransportError(
                self.SERVICE_NAME,
                "crop rejected",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            raise UpstreamTransportError(self.SERVICE_NAME, "empty PDF returned")
        return response.content
