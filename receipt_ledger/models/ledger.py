"""
Ledger Models

The accounting document sent to the ledger API, and the connection
values needed to reach it.

Wire format (CNX `v1/compta/ecriture`):

    {
      "journal": "AC", "mois": 3, "annee": 2024, "ReferenceGed": "123",
      "lignesEcriture": [
        {"jour": 5, "numeroPiece": "001", "numeroFacture": "T-42",
         "compte": "FDIVERS", "libelle": "SHOP", "credit": 120.0,
         "debit": 0.0, "modeReglement": ""},
        ...
      ]
    }
"""

from decimal import Decimal
from typing import Annotated, Any, ClassVar, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)

from receipt_ledger.accounting.numbers import round2
from receipt_ledger.config.settings import LedgerApiSettings
from receipt_ledger.errors import ValidationError


# Amounts travel as JSON numbers
Money = Annotated[
    Decimal,
    PlainSerializer(float, return_type=float, when_used="json"),
]

ZERO = Decimal("0")


class VatSpec(BaseModel):
    """One row of the VAT table."""
    model_config = ConfigDict(frozen=True)
    
    rate: str
    tax_code: str = Field(description="Empty for zero-rated VAT")
    tax_account: str = Field(description="Deductible VAT account, empty when none")


class LedgerLine(BaseModel):
    """
    One line of a ledger entry.
    
    Exactly one of credit/debit is non-zero.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    
    day: int = Field(..., ge=1, le=31, alias="jour")
    piece_number: str = Field(default="001", alias="numeroPiece")
    invoice_number: str = Field(..., alias="numeroFacture")
    account: str = Field(..., min_length=1, alias="compte")
    label: str = Field(..., alias="libelle")
    credit: Money = Field(default=ZERO, ge=0)
    debit: Money = Field(default=ZERO, ge=0)
    payment_method: Optional[str] = Field(default=None, alias="modeReglement")
    tax_code: Optional[str] = Field(default=None, alias="codeTVA")
    
    @model_validator(mode="after")
    def one_sided(self) -> "LedgerLine":
        if (self.credit != ZERO) == (self.debit != ZERO):
            raise ValueError(
                f"Line on {self.account} must have exactly one of credit/debit set"
            )
        return self


class LedgerEntry(BaseModel):
    """
    A balanced accounting document for one receipt.
    
    CRITICAL: sum(credit) == sum(debit) at 2-decimal precision.
    Construction fails otherwise; an entry is never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)
    
    journal: str = Field(..., min_length=1)
    month: int = Field(..., ge=1, le=12, alias="mois")
    year: int = Field(..., ge=1, alias="annee")
    reference_id: str = Field(..., min_length=1, alias="ReferenceGed")
    lines: tuple[LedgerLine, ...] = Field(
        ...,
        min_length=2,
        max_length=3,
        alias="lignesEcriture",
    )
    
    @property
    def total_credit(self) -> Decimal:
        return round2(sum((line.credit for line in self.lines), ZERO))
    
    @property
    def total_debit(self) -> Decimal:
        return round2(sum((line.debit for line in self.lines), ZERO))
    
    @property
    def is_balanced(self) -> bool:
        return self.total_credit == self.total_debit
    
    @model_validator(mode="after")
    def balanced(self) -> "LedgerEntry":
        if not self.is_balanced:
            raise ValueError(
                f"Entry is not balanced: credit {self.total_credit} != debit {self.total_debit}"
            )
        return self
    
    def to_payload(self) -> dict[str, Any]:
        """JSON body for the ledger API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class LedgerConnection(BaseModel):
    """
    Where and as whom to reach the ledger API.
    
    An immutable value: changing credentials means building a new
    connection and handing it to the session manager, which drops its
    cached token. Fields may be empty; `require()` checks them at the
    point of use.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)
    
    base_url: str = ""
    identifier: str = ""
    secret: str = Field(default="", repr=False)
    tenant_code: str = ""
    
    # field -> name shown to the operator
    REQUIRED_LABELS: ClassVar[dict[str, str]] = {
        "base_url": "CNX_BASE_URL",
        "identifier": "CNX_IDENTIFIANT",
        "secret": "CNX_MOTDEPASSE",
        "tenant_code": "CNX_CODE_DOSSIER",
    }
    
    @classmethod
    def from_settings(cls, settings: LedgerApiSettings) -> "LedgerConnection":
        return cls(
            base_url=settings.base_url,
            identifier=settings.identifiant,
            secret=settings.motdepasse,
            tenant_code=settings.code_dossier,
        )
    
    def require(self, *fields: str) -> None:
        """Raise ValidationError for the first empty field among `fields`."""
        for name in fields:
            if not getattr(self, name):
                label = self.REQUIRED_LABELS.get(name, name)
                raise ValidationError(label, f"Missing required field: {label}")
    
    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
