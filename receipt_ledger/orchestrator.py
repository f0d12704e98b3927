"""
Main Orchestrator for Receipt Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Upload analysis (receipt → GED → page image → extraction → suggestion)
2. Submission (operator form → validation → ledger entry → post)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is posted without an operator submission
- No ledger call happens before the submission validates
- Every external failure aborts the remaining steps
- Every step is audited
"""

from typing import Any, Mapping, Optional, Protocol, Union
from uuid import UUID

import httpx
from pydantic import BaseModel, ConfigDict

from receipt_ledger.accounting.classifier import suggest
from receipt_ledger.audit import AuditLogger, create_correlation_id
from receipt_ledger.config import get_settings
from receipt_ledger.errors import ReceiptLedgerError, ValidationError
from receipt_ledger.models.audit import AuditEventBuilder
from receipt_ledger.models.ledger import LedgerConnection, LedgerEntry
from receipt_ledger.models.receipt import ExtractionResult, Suggestion
from receipt_ledger.services.documents import (
    PageRasterizer,
    PdfCropper,
    RasterImage,
    detect_media_type,
    is_pdf,
)
from receipt_ledger.services.extraction import GeminiReceiptExtractor
from receipt_ledger.services.ledger import LedgerSessionManager
from receipt_ledger.validation import SubmissionValidator


class ReceiptExtractor(Protocol):
    async def extract(self, image: RasterImage) -> ExtractionResult: ...


class UploadAnalysis(BaseModel):
    """What the review screen shows after an upload."""
    model_config = ConfigDict(frozen=True)
    
    document_id: str
    extraction: ExtractionResult
    suggestion: Suggestion
    correlation_id: UUID
    
    def to_response(self) -> dict[str, Any]:
        return {
            "ok": True,
            "gedId": self.document_id,
            "extraction": self.extraction.to_review_dict(),
            "suggestion": self.suggestion.model_dump(mode="json", by_alias=True),
        }


class SubmissionReceipt(BaseModel):
    """Result of a posted submission."""
    model_config = ConfigDict(frozen=True)
    
    entry: LedgerEntry
    acknowledgement: str
    correlation_id: UUID
    
    def to_response(self) -> dict[str, Any]:
        return {
            "ok": True,
            "message": "Écriture envoyée",
            "result": {"raw": self.acknowledgement},
        }


class ReceiptUploadFlow:
    """
    Orchestrates the receipt flows.
    
    Upload flow:
    1. Crop    → optional sidecar, PDFs only, falls back to the original
    2. Store   → dossier session, then GED upload
    3. Render  → first page to an image
    4. Extract → vision model, JSON recovered from its answer
    5. Suggest → category / supplier account / VAT rate heuristics
    
    Submission flow:
    1. Validate → required fields, VAT table, category × VAT
    2. Build    → balanced ledger entry
    3. Post     → dossier session, then entry post
    
    The operator reviews and edits between the two flows.
    """
    
    def __init__(
        self,
        session_manager: LedgerSessionManager,
        extractor: Optional[ReceiptExtractor] = None,
        rasterizer: Optional[PageRasterizer] = None,
        cropper: Optional[PdfCropper] = None,
        validator: Optional[SubmissionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        self._session = session_manager
        self._extractor = extractor or GeminiReceiptExtractor()
        self._rasterizer = rasterizer or PageRasterizer()
        self._cropper = cropper
        self._validator = validator or SubmissionValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._max_upload_bytes = max_upload_bytes
    
    @property
    def session_manager(self) -> LedgerSessionManager:
        return self._session
    
    def _check_upload(self, content: bytes) -> None:
        if not content:
            raise ValidationError("pdf", "No document uploaded")
        if self._max_upload_bytes is not None and len(content) > self._max_upload_bytes:
            raise ValidationError(
                "pdf",
                f"Document exceeds the upload limit of {self._max_upload_bytes} bytes",
            )
    
    async def analyze_upload(
        self,
        content: bytes,
        filename: str = "ticket.pdf",
        correlation_id: Optional[UUID] = None,
    ) -> UploadAnalysis:
        """
        Store a receipt in the GED, read it and propose accounting choices.
        
        Raises:
            ValidationError: empty, oversized or unsupported upload
            SessionError / UpstreamTransportError: the dossier session or
                GED upload failed; nothing was stored
            UpstreamTransportError / UpstreamParseError: rendering or
                extraction failed after the upload; the GED id is attached
                to the error details
        """
        correlation_id = correlation_id or create_correlation_id()
        self._check_upload(content)
        self._audit_logger.log(
            AuditEventBuilder.upload_received(filename, len(content), correlation_id)
        )
        
        document = content
        if self._cropper is not None and is_pdf(content):
            document = await self._cropper.crop(content, filename)
            if self._cropper.last_error:
                self._audit_logger.log(
                    AuditEventBuilder.crop_fallback(self._cropper.last_error, correlation_id)
                )
        
        content_type = detect_media_type(document)
        try:
            document_id = await self._session.upload_document(
                document,
                filename,
                content_type=content_type,
                correlation_id=correlation_id,
            )
        except ReceiptLedgerError as e:
            self._audit_logger.log(
                AuditEventBuilder.external_service_error("ged", e.message, correlation_id)
            )
            raise
        
        self._audit_logger.log(
            AuditEventBuilder.document_uploaded(document_id, filename, correlation_id)
        )
        
        try:
            image = await self._rasterizer.rasterize(document)
            extraction = await self._extractor.extract(image)
        except ReceiptLedgerError as e:
            self._audit_logger.log(
                AuditEventBuilder.extraction_failed(document_id, e.message, correlation_id)
            )
            raise e.with_details(gedId=document_id)
        
        missing = [
            name for name, value in extraction.model_dump().items()
            if value is None
        ]
        self._audit_logger.log(
            AuditEventBuilder.extraction_completed(document_id, missing, correlation_id)
        )
        
        suggestion = suggest(extraction)
        self._audit_logger.log(
            AuditEventBuilder.suggestion_made(
                document_id,
                suggestion.category.value if suggestion.category else None,
                suggestion.supplier_account,
                suggestion.vat_rate,
                correlation_id,
            )
        )
        
        return UploadAnalysis(
            document_id=document_id,
            extraction=extraction,
            suggestion=suggestion,
            correlation_id=correlation_id,
        )
    
    async def submit(
        self,
        form: Union[Mapping[str, Any], str, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> SubmissionReceipt:
        """
        Validate an operator submission, build its entry and post it.
        
        CRITICAL: No ledger call is made unless the submission validates
        and the entry balances.
        """
        correlation_id = correlation_id or create_correlation_id()
        reference = form.get("referenceGedId") if isinstance(form, Mapping) else None
        self._audit_logger.log(
            AuditEventBuilder.submission_received(
                str(reference) if reference else None, correlation_id
            )
        )
        
        try:
            request = self._validator.validate(form)
            entry = request.build_entry()
        except ValidationError as e:
            self._audit_logger.log(
                AuditEventBuilder.validation_failed(e.field, e.message, correlation_id)
            )
            raise
        
        self._audit_logger.log(
            AuditEventBuilder.entry_built(
                entry.reference_id,
                len(entry.lines),
                str(entry.total_credit),
                correlation_id,
            )
        )
        
        try:
            ack = await self._session.post_entry(entry, correlation_id=correlation_id)
        except ReceiptLedgerError as e:
            self._audit_logger.log(
                AuditEventBuilder.external_service_error("ledger", e.message, correlation_id)
            )
            raise
        
        self._audit_logger.log(
            AuditEventBuilder.entry_posted(entry.reference_id, entry.journal, correlation_id)
        )
        return SubmissionReceipt(
            entry=entry,
            acknowledgement=ack.raw,
            correlation_id=correlation_id,
        )
    
    async def open_dossier_session(self, tenant_code: Optional[str] = None) -> dict[str, Any]:
        """Open a dossier session on demand (connection check from the admin screen)."""
        scope = await self._session.open_dossier(tenant_code)
        return {"ok": True, "result": {"raw": scope.ack.raw}}
    
    def update_connection(self, connection: LedgerConnection) -> None:
        """Switch ledger credentials/tenant; the cached session is dropped."""
        self._session.update_connection(connection)
    
    def public_config(self) -> dict[str, str]:
        """Non-secret configuration the review screen may display."""
        return {"codeDossier": self._session.connection.tenant_code}


def create_app_components(
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ReceiptUploadFlow:
    """
    Factory function wiring settings into a ReceiptUploadFlow.
    
    Args:
        transport: Optional httpx transport for the ledger and cropper
                   clients (tests use httpx.MockTransport)
    """
    settings = get_settings()
    audit_logger = AuditLogger()
    
    session_manager = LedgerSessionManager.from_settings(
        settings.ledger,
        audit_logger=audit_logger,
        transport=transport,
    )
    
    return ReceiptUploadFlow(
        session_manager=session_manager,
        extractor=GeminiReceiptExtractor(),
        rasterizer=PageRasterizer.from_settings(settings.app),
        cropper=PdfCropper(settings.cropper, transport=transport),
        audit_logger=audit_logger,
        max_upload_bytes=settings.app.max_upload_size_bytes,
    )
