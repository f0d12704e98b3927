"""
VAT table.

Closed and explicit: a rate identifier is either listed here or rejected.
Codes are never derived from the rate, and an unknown rate never falls
back to the 20% row.
"""

from typing import Any

from receipt_ledger.errors import ValidationError
from receipt_ledger.models.ledger import VatSpec


VAT_TABLE: dict[str, VatSpec] = {
    "20": VatSpec(rate="20", tax_code="TN", tax_account="44566200"),
    "10": VatSpec(rate="10", tax_code="TI", tax_account="44566100"),
    "0": VatSpec(rate="0", tax_code="", tax_account=""),
}

VAT_RATES = tuple(VAT_TABLE)


def lookup_vat(rate: Any) -> VatSpec:
    """Return the VAT row for `rate` ("20", "10", "0")."""
    key = str(rate).strip() if rate is not None else ""
    row = VAT_TABLE.get(key)
    if row is None:
        raise ValidationError(
            "tva_rate",
            f"Invalid VAT rate {key!r} (expected one of {', '.join(VAT_RATES)})",
        )
    return row
