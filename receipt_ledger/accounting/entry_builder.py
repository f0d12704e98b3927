"""
Ledger entry builder.

Turns normalized receipt amounts and resolved accounts into a balanced
accounting document:

    line 1  supplier account   credit  TTC
    line 2  charges account    debit   HT    (tagged with the VAT code, if any)
    line 3  VAT account        debit   TVA   (only when TVA > 0)

CRITICAL: The result always balances. If the amounts given cannot
produce a balanced entry, building fails and nothing is returned.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from receipt_ledger.accounting.dates import parse_calendar_date
from receipt_ledger.accounting.numbers import round2, to_decimal
from receipt_ledger.errors import ValidationError
from receipt_ledger.models.ledger import ZERO, LedgerEntry, LedgerLine


DEFAULT_PIECE_NUMBER = "001"

# Largest accepted amount; anything above is treated as a misread
MAX_AMOUNT = Decimal("1000000000000")


def derive_tax_amount(
    total_including_tax: Optional[Decimal],
    total_excluding_tax: Optional[Decimal],
) -> Optional[Decimal]:
    """TTC - HT, or None when either is missing or the result is negative."""
    if total_including_tax is None or total_excluding_tax is None:
        return None
    derived = total_including_tax - total_excluding_tax
    return derived if derived >= 0 else None


def _rounded_amount(value: Any, field: str) -> Optional[Decimal]:
    amount = to_decimal(value)
    if amount is None:
        return None
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(field, f"Amount out of range: {field}")
    return round2(amount)


def _positive_amount(value: Any, field: str) -> Decimal:
    amount = _rounded_amount(value, field)
    if amount is None:
        raise ValidationError(field, f"Missing or non-numeric amount: {field}")
    if amount <= 0:
        raise ValidationError(field, f"Amount must be greater than zero: {field}")
    return amount


def build_ledger_entry(
    journal: str,
    reference_id: str,
    document_date: Any,
    ticket_number: str,
    supplier_account: str,
    payee_label: str,
    charges_account: str,
    tax_code: Optional[str],
    tax_liability_account: Optional[str],
    total_including_tax: Any,
    total_excluding_tax: Any,
    tax_amount: Any = None,
    piece_number: str = DEFAULT_PIECE_NUMBER,
) -> LedgerEntry:
    """
    Build the ledger entry for one receipt.
    
    Args:
        journal: Journal code
        reference_id: GED document id returned by the upload
        document_date: Receipt date (date or parseable string)
        ticket_number: Receipt / invoice number
        supplier_account: Supplier account credited with TTC
        payee_label: Label written on every line
        charges_account: Resolved charges account debited with HT
        tax_code: VAT code for the charges line ("" for zero-rated)
        tax_liability_account: Deductible VAT account ("" for zero-rated)
        total_including_tax: TTC
        total_excluding_tax: HT
        tax_amount: TVA; derived as TTC - HT when None
        
    Returns:
        A balanced LedgerEntry with 2 or 3 lines
        
    Raises:
        ValidationError: invalid date or amounts, missing VAT account,
            or amounts that do not balance
    """
    entry_date: Optional[date] = parse_calendar_date(document_date)
    if entry_date is None:
        raise ValidationError("date_ticket", f"Invalid document date: {document_date!r}")
    
    ttc = _positive_amount(total_including_tax, "montant_ttc")
    ht = _positive_amount(total_excluding_tax, "ht")
    
    tva = _rounded_amount(tax_amount, "tva_montant")
    if tva is None:
        tva = derive_tax_amount(ttc, ht)
    if tva is None:
        tva = ZERO
    if tva < 0:
        raise ValidationError("tva_montant", "Tax amount cannot be negative")
    
    if tva > 0 and not tax_liability_account:
        raise ValidationError(
            "compte_tva",
            "Missing tax-liability account for a receipt with VAT",
        )
    
    debits = ht + tva
    if ttc != debits:
        raise ValidationError(
            "montant_ttc",
            f"Entry does not balance: TTC {ttc} != HT {ht} + TVA {tva}",
            details={"credit": str(ttc), "debit": str(debits)},
        )
    
    common = {
        "day": entry_date.day,
        "piece_number": piece_number,
        "invoice_number": str(ticket_number),
        "label": str(payee_label),
    }
    
    try:
        lines = [
            LedgerLine(
                **common,
                account=str(supplier_account),
                credit=ttc,
                payment_method="",
            ),
            LedgerLine(
                **common,
                account=str(charges_account),
                debit=ht,
                tax_code=str(tax_code) if tax_code else None,
            ),
        ]
        if tva > 0:
            lines.append(
                LedgerLine(
                    **common,
                    account=str(tax_liability_account),
                    debit=tva,
                )
            )
        return LedgerEntry(
            journal=str(journal),
            month=entry_date.month,
            year=entry_date.year,
            reference_id=str(reference_id),
            lines=lines,
        )
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "ecriture"
        raise ValidationError(field, f"Invalid ledger entry: {first['msg']}") from e
