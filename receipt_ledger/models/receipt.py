"""
Receipt Models

What the extractor read from a receipt, and what the heuristics propose
for it. Both are advisory: the operator may change every field before a
ledger entry is built.

Field aliases are the JSON keys used by the extraction prompt and by the
review screen (`date_document`, `montant_ttc`, `categorie_ui`, ...).
Python code uses the English attribute names.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from receipt_ledger.accounting.dates import parse_calendar_date
from receipt_ledger.accounting.numbers import to_decimal


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SpendingCategory(str, Enum):
    """
    Spending categories offered to the operator.
    
    Each one maps to a charges account per VAT rate
    (see `receipt_ledger.accounting.accounts`).
    """
    PETITES_FOURNITURES = "petites_fournitures"
    CARBURANT = "carburant"
    REPAS_PRO = "repas_pro"
    REPAS = "repas"
    PAPETERIE = "papeterie"
    PEAGES = "peages"
    PARKING = "parking"


DEFAULT_SUPPLIER_ACCOUNT = "FDIVERS"


# =============================================================================
# EXTRACTION
# =============================================================================

class ExtractionResult(BaseModel):
    """
    Data read from one receipt by the vision extractor.
    
    CRITICAL: This is PROPOSED data, NOT verified.
    Every field is optional. Amounts go through the numeric normalizer
    and never fail validation; unreadable values simply become None.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )
    
    document_date: Optional[date] = Field(default=None, alias="date_document")
    ticket_number: Optional[str] = Field(default=None, alias="numero_ticket")
    total_including_tax: Optional[Decimal] = Field(default=None, alias="montant_ttc")
    total_excluding_tax: Optional[Decimal] = Field(default=None, alias="montant_ht")
    tax_amount: Optional[Decimal] = Field(default=None, alias="montant_tva")
    payee_name: Optional[str] = Field(default=None, alias="raison_sociale")
    keywords: tuple[str, ...] = Field(default=(), alias="mots_cles")
    
    @field_validator("document_date", mode="before")
    @classmethod
    def lenient_date(cls, v: Any) -> Optional[date]:
        return parse_calendar_date(v)
    
    @field_validator("total_including_tax", "total_excluding_tax", "tax_amount", mode="before")
    @classmethod
    def normalize_amount(cls, v: Any) -> Optional[Decimal]:
        return to_decimal(v)
    
    @field_validator("ticket_number", "payee_name", mode="before")
    @classmethod
    def optional_text(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, (dict, list)):
            return None
        text = str(v).strip()
        return text or None
    
    @field_validator("keywords", mode="before")
    @classmethod
    def keyword_list(cls, v: Any) -> tuple[str, ...]:
        if not isinstance(v, (list, tuple)):
            return ()
        return tuple(str(item) for item in v if item is not None)
    
    @property
    def classifier_text(self) -> str:
        """Merchant name followed by the keywords, space separated."""
        return " ".join([self.payee_name or "", *self.keywords])
    
    def to_review_dict(self) -> dict[str, Any]:
        """Serialize with the review-screen keys, amounts as numbers."""
        data = self.model_dump(mode="json", by_alias=True)
        for key in ("montant_ttc", "montant_ht", "montant_tva"):
            if data[key] is not None:
                data[key] = float(data[key])
        data["mots_cles"] = list(self.keywords)
        return data


class Suggestion(BaseModel):
    """
    Category, supplier account and VAT rate proposed for a receipt.
    
    Advisory only - the operator confirms or overrides each field.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    
    category: Optional[SpendingCategory] = Field(default=None, alias="categorie_ui")
    supplier_account: str = Field(default=DEFAULT_SUPPLIER_ACCOUNT, alias="compteF")
    vat_rate: Optional[str] = Field(default=None, alias="tva_rate")
    
    def with_vat_rate(self, vat_rate: Optional[str]) -> "Suggestion":
        return self.model_copy(update={"vat_rate": vat_rate})
