"""
Category and VAT heuristics.

Two independent, advisory signals:

1. Keywords found in the merchant name and extracted keywords propose a
   category, a supplier account and a VAT rate.
2. The tax / pre-tax ratio proposes a VAT rate.

The ratio guess, when it has one, wins over the keyword rate. Neither is
authoritative; the operator confirms.
"""

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from receipt_ledger.accounting.numbers import to_decimal
from receipt_ledger.models.receipt import (
    DEFAULT_SUPPLIER_ACCOUNT,
    ExtractionResult,
    SpendingCategory,
    Suggestion,
)


@dataclass(frozen=True)
class KeywordRule:
    category: SpendingCategory
    supplier_account: str
    vat_rate: str
    keywords: tuple[str, ...]


# Checked in order, first match wins
KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        SpendingCategory.REPAS_PRO, "FREPAS", "10",
        ("repas", "restaurant", "café", "cafe", "brasserie", "bistrot", "menu"),
    ),
    KeywordRule(
        SpendingCategory.CARBURANT, "FCARBU", "20",
        ("carburant", "gasoil", "gazole", "go", "super", "sp", "essence", "station-service"),
    ),
    KeywordRule(
        SpendingCategory.PARKING, "FPARKING", "20",
        ("parking", "stationnement", "park"),
    ),
    KeywordRule(
        SpendingCategory.PEAGES, "FPEAGE", "20",
        ("peage", "péage", "asf", "escota", "aprr", "sanef"),
    ),
)

# Keywords this short ("go", "sp", "asf") only count as whole words
SHORT_KEYWORD_LENGTH = 3

RATIO_20 = Decimal("0.20")
RATIO_20_TOLERANCE = Decimal("0.03")
RATIO_10 = Decimal("0.10")
RATIO_10_TOLERANCE = Decimal("0.02")


def _keyword_pattern(keyword: str) -> re.Pattern:
    escaped = re.escape(keyword.casefold())
    if len(keyword) <= SHORT_KEYWORD_LENGTH:
        return re.compile(rf"(?<!\w){escaped}(?!\w)")
    return re.compile(escaped)


_COMPILED_RULES = tuple(
    (rule, tuple(_keyword_pattern(k) for k in rule.keywords))
    for rule in KEYWORD_RULES
)


def suggest_from_text(text: Optional[str]) -> Suggestion:
    """Keyword-based suggestion; no match gives the FDIVERS default."""
    haystack = (text or "").casefold()
    for rule, patterns in _COMPILED_RULES:
        if any(p.search(haystack) for p in patterns):
            return Suggestion(
                category=rule.category,
                supplier_account=rule.supplier_account,
                vat_rate=rule.vat_rate,
            )
    return Suggestion(category=None, supplier_account=DEFAULT_SUPPLIER_ACCOUNT, vat_rate=None)


def guess_vat_rate(total_excluding_tax: Any, tax_amount: Any) -> Optional[str]:
    """
    Guess the VAT rate from tax / pre-tax.
    
    "20" within 0.03 of 0.20, "10" within 0.02 of 0.10, "0" when the tax
    is exactly zero, otherwise None. Only evaluated for a positive
    pre-tax amount and a non-negative tax amount.
    """
    ht = to_decimal(total_excluding_tax)
    tva = to_decimal(tax_amount)
    if ht is None or ht <= 0:
        return None
    if tva is None or tva < 0:
        return None
    
    ratio = tva / ht
    if abs(ratio - RATIO_20) < RATIO_20_TOLERANCE:
        return "20"
    if abs(ratio - RATIO_10) < RATIO_10_TOLERANCE:
        return "10"
    if tva == 0:
        return "0"
    return None


def suggest(extraction: ExtractionResult) -> Suggestion:
    """Combine both signals for one extraction."""
    by_keywords = suggest_from_text(extraction.classifier_text)
    guessed = guess_vat_rate(extraction.total_excluding_tax, extraction.tax_amount)
    return by_keywords.with_vat_rate(guessed or by_keywords.vat_rate)
