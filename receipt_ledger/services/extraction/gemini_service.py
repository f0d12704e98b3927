"""
Receipt extraction using a Gemini vision model

This service handles:
1. Sending one page image with a fixed instructional prompt
2. Recovering the JSON object from the answer
3. Converting it to an ExtractionResult

IMPORTANT BOUNDARIES:
- This service ONLY reads the receipt. It does not categorize, validate
  amounts against each other, or build accounting data.
- A receipt with several VAT rates must come back with ONE summed tax
  amount; the prompt asks the model to do so.
- No automatic retry: a failed call fails the upload.
"""

from typing import Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from receipt_ledger.config import get_settings
from receipt_ledger.config.settings import GeminiSettings
from receipt_ledger.errors import UpstreamTransportError
from receipt_ledger.models.receipt import ExtractionResult
from receipt_ledger.services.documents.rasterizer import RasterImage
from receipt_ledger.services.extraction.response_parser import (
    extract_response_text,
    parse_json_response,
)


EXTRACTION_PROMPT = """
Tu extrais les infos d'un ticket/facture.
Renvoie STRICTEMENT un JSON valide :
{
  "date_document": "AAAA-MM-JJ",
  "numero_ticket": "string",
  "montant_ttc": 123.45,
  "montant_ht": 100.00,
  "montant_tva": 23.45,
  "raison_sociale": "Nom visible sur le ticket",
  "mots_cles": ["repas","restaurant","parking","peage","gasoil","super","sp","stationnement"]
}
Règles:
- nombres en décimal (point).
- si absent -> null.
- s'il y a plusieurs taux de TVA, montant_tva est la somme de toutes les TVA.
- mots_cles: 0 à 10 mots utiles réellement visibles.
""".strip()


class GeminiReceiptExtractor:
    """
    Vision extractor backed by `google-generativeai`.
    
    The model is created on first use so that the API key is only
    required when an extraction actually runs.
    """
    
    SERVICE_NAME = "gemini"
    
    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings
        self._model: Optional[genai.GenerativeModel] = None
    
    def _get_model(self) -> genai.GenerativeModel:
        """Configure the SDK and create the model."""
        if self._model is None:
            if self._settings is None:
                self._settings = get_settings().gemini
            genai.configure(api_key=self._settings.api_key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        return self._model
    
    async def extract(self, image: RasterImage) -> ExtractionResult:
        """
        Extract receipt fields from one page image.
        
        Raises:
            UpstreamTransportError: the API call failed or timed out
            UpstreamParseError: the answer holds no usable JSON object
        """
        model = self._get_model()
        
        try:
            response = await model.generate_content_async(
                [
                    EXTRACTION_PROMPT,
                    {"mime_type": image.media_type, "data": image.data},
                ],
                request_options={"timeout": self._settings.timeout_seconds},
            )
        except google_exceptions.DeadlineExceeded as e:
            raise UpstreamTransportError(self.SERVICE_NAME, "request timed out", body=str(e)) from e
        except google_exceptions.GoogleAPICallError as e:
            raise UpstreamTransportError(
                self.SERVICE_NAME,
                "extraction request failed",
                status_code=e.code if isinstance(e.code, int) else None,
                body=e.message,
            ) from e
        
        text = extract_response_text(response)
        return ExtractionResult.model_validate(parse_json_response(text))
