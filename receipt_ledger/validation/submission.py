"""
Two-Stage Submission Validation

The operator confirms (and may edit) the extracted fields and the
suggestion, then submits a form. This module turns that form into a
validated build request. Nothing external is called before it passes.

STAGE 1 - SCHEMA VALIDATION:
- Required field presence

STAGE 2 - SEMANTIC VALIDATION:
- VAT rate is in the closed VAT table
- Category × VAT rate resolves to a charges account
- Document date is a real calendar date
- Amounts are numeric

IMPORTANT: Validation NEVER silently fixes issues. The first problem
found is raised as a ValidationError naming the offending field.
"""

import json
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from receipt_ledger.accounting.accounts import resolve_charges_account
from receipt_ledger.accounting.dates import parse_calendar_date
from receipt_ledger.accounting.entry_builder import build_ledger_entry
from receipt_ledger.accounting.numbers import to_decimal
from receipt_ledger.accounting.vat import lookup_vat
from receipt_ledger.errors import ValidationError
from receipt_ledger.models.ledger import LedgerEntry, VatSpec
from receipt_ledger.models.receipt import SpendingCategory


# (form key, label shown to the operator), in the order they are checked
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("journal", "journal"),
    ("referenceGedId", "referenceGedId"),
    ("compteFournisseur", "compteFournisseur (F...)"),
    ("categorie_ui", "categorie_ui"),
    ("tva_rate", "tva_rate (20/10/0)"),
    ("date_ticket", "date_ticket"),
    ("numero_ticket", "numero_ticket"),
    ("raison_sociale", "raison_sociale"),
    ("montant_ttc", "montant_ttc"),
    ("ht", "ht"),
)


@dataclass(frozen=True)
class BuildRequest:
    """A validated submission, ready to become a ledger entry."""
    journal: str
    reference_id: str
    document_date: date
    ticket_number: str
    supplier_account: str
    payee_label: str
    category: SpendingCategory
    vat: VatSpec
    charges_account: str
    total_including_tax: Decimal
    total_excluding_tax: Decimal
    tax_amount: Optional[Decimal]
    
    def build_entry(self) -> LedgerEntry:
        return build_ledger_entry(
            journal=self.journal,
            reference_id=self.reference_id,
            document_date=self.document_date,
            ticket_number=self.ticket_number,
            supplier_account=self.supplier_account,
            payee_label=self.payee_label,
            charges_account=self.charges_account,
            tax_code=self.vat.tax_code,
            tax_liability_account=self.vat.tax_account,
            total_including_tax=self.total_including_tax,
            total_excluding_tax=self.total_excluding_tax,
            tax_amount=self.tax_amount,
        )


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


class SubmissionValidator:
    """
    Validates an operator submission through a two-stage pipeline.
    
    Stage 1: Schema validation (presence)
    Stage 2: Semantic validation (tables, date, amounts)
    """
    
    def _load(self, form: Union[Mapping[str, Any], str, bytes, None]) -> Mapping[str, Any]:
        if form is None:
            return {}
        if isinstance(form, (str, bytes)):
            try:
                form = json.loads(form or "{}")
            except ValueError:
                raise ValidationError("meta", "Submission is not valid JSON") from None
        if not isinstance(form, Mapping):
            raise ValidationError("meta", "Submission must be a JSON object")
        return form
    
    def _validate_schema(self, form: Mapping[str, Any]) -> None:
        """Stage 1: every required field is present and non-blank."""
        for key, label in REQUIRED_FIELDS:
            if _is_blank(form.get(key)):
                raise ValidationError(key, f"Missing required field: {label}")
    
    def _validate_semantic(self, form: Mapping[str, Any]) -> BuildRequest:
        """Stage 2: closed tables, calendar date and numeric amounts."""
        vat = lookup_vat(form["tva_rate"])
        category = form["categorie_ui"]
        charges_account = resolve_charges_account(category, vat.rate)
        
        document_date = parse_calendar_date(form["date_ticket"])
        if document_date is None:
            raise ValidationError("date_ticket", f"Invalid date: {form['date_ticket']!r}")
        
        ttc = to_decimal(form["montant_ttc"])
        if ttc is None:
            raise ValidationError("montant_ttc", "montant_ttc must be a number")
        ht = to_decimal(form["ht"])
        if ht is None:
            raise ValidationError("ht", "ht must be a number")
        
        tax_value = form.get("tva_montant")
        tax_amount = to_decimal(tax_value)
        if tax_amount is None and not _is_blank(tax_value):
            raise ValidationError("tva_montant", "tva_montant must be a number")
        
        return BuildRequest(
            journal=str(form["journal"]).strip(),
            reference_id=str(form["referenceGedId"]).strip(),
            document_date=document_date,
            ticket_number=str(form["numero_ticket"]).strip(),
            supplier_account=str(form["compteFournisseur"]).strip(),
            payee_label=str(form["raison_sociale"]).strip(),
            category=SpendingCategory(category),
            vat=vat,
            charges_account=charges_account,
            total_including_tax=ttc,
            total_excluding_tax=ht,
            tax_amount=tax_amount,
        )
    
    def validate(self, form: Union[Mapping[str, Any], str, bytes, None]) -> BuildRequest:
        """
        Run both stages.
        
        Args:
            form: The submission, as a mapping or a JSON string
            
        Raises:
            ValidationError: on the first problem found
        """
        data = self._load(form)
        self._validate_schema(data)
        return self._validate_semantic(data)
