"""
Charges account resolution.

The charges account depends on both the spending category and the VAT
rate. Pairs missing from CHARGES_ACCOUNTS are invalid: there is no
default account.
"""

from typing import Any, Iterator

from receipt_ledger.errors import ValidationError
from receipt_ledger.models.receipt import SpendingCategory


CHARGES_ACCOUNTS: dict[tuple[SpendingCategory, str], str] = {
    (SpendingCategory.PETITES_FOURNITURES, "20"): "60631000",
    (SpendingCategory.PETITES_FOURNITURES, "10"): "60630000",
    (SpendingCategory.CARBURANT, "20"): "60614000",
    (SpendingCategory.REPAS_PRO, "10"): "62511000",
    (SpendingCategory.REPAS, "0"): "62510000",
    (SpendingCategory.PAPETERIE, "20"): "60640000",
    (SpendingCategory.PEAGES, "20"): "62512000",
    (SpendingCategory.PARKING, "20"): "62512000",
}


def resolve_charges_account(category: Any, vat_rate: Any) -> str:
    """
    Charges account for (category, VAT rate).
    
    Raises:
        ValidationError: unknown category, or a combination with no account
    """
    try:
        key = SpendingCategory(category)
    except ValueError:
        raise ValidationError("categorie_ui", f"Unknown category {category!r}") from None
    
    rate = str(vat_rate).strip() if vat_rate is not None else ""
    account = CHARGES_ACCOUNTS.get((key, rate))
    if not account:
        raise ValidationError(
            "categorie_ui",
            f"Invalid category/VAT combination: {key.value} at {rate or '?'}%",
        )
    return account


def supported_combinations() -> Iterator[tuple[SpendingCategory, str]]:
    """Every (category, rate) pair that resolves to an account."""
    return iter(CHARGES_ACCOUNTS)
