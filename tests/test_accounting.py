"""
Tests for the accounting rules: amounts, VAT table, charges accounts,
heuristics and the ledger entry builder.
"""

import pytest
from datetime import date
from decimal import Decimal

from receipt_ledger.accounting.accounts import (
    CHARGES_ACCOUNTS,
    resolve_charges_account,
    supported_combinations,
)
from receipt_ledger.accounting.classifier import guess_vat_rate, suggest, suggest_from_text
from receipt_ledger.accounting.dates import parse_calendar_date
from receipt_ledger.accounting.entry_builder import build_ledger_entry, derive_tax_amount
from receipt_ledger.accounting.numbers import round2, to_decimal
from receipt_ledger.accounting.vat import VAT_TABLE, lookup_vat
from receipt_ledger.errors import ValidationError
from receipt_ledger.models import ExtractionResult, SpendingCategory


class TestAmountNormalization:
    """Tests for to_decimal and round2."""
    
    @pytest.mark.parametrize("raw, expected", [
        ("1 234,56", Decimal("1234.56")),
        ("1 234,56", Decimal("1234.56")),
        ("12,5", Decimal("12.5")),
        ("120.50 EUR", Decimal("120.50")),
        (1234.5, Decimal("1234.5")),
        (42, Decimal("42")),
        (Decimal("3.10"), Decimal("3.10")),
    ])
    def test_parses_numbers(self, raw, expected):
        """Test numbers and French-formatted strings."""
        assert to_decimal(raw) == expected
    
    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", True, float("nan"), float("inf"), [1]])
    def test_unparseable_is_none(self, raw):
        """Test missing or non-numeric values never raise."""
        assert to_decimal(raw) is None
    
    def test_round2_half_up(self):
        """Test rounding to cents, half away from zero."""
        assert round2(2.005) == Decimal("2.01")
        assert round2(Decimal("2.004")) == Decimal("2.00")
        assert round2(Decimal("-1.005")) == Decimal("-1.01")
    
    def test_round2_idempotent(self):
        """Test that rounding twice changes nothing."""
        for value in (Decimal("0.125"), Decimal("19.999"), Decimal("7")):
            assert round2(round2(value)) == round2(value)


class TestCalendarDates:
    """Tests for parse_calendar_date."""
    
    @pytest.mark.parametrize("raw", [
        "2024-03-05",
        "05/03/2024",
        "05-03-2024",
        "2024/03/05",
        "05.03.2024",
        "2024-03-05T10:30:00Z",
    ])
    def test_supported_formats(self, raw):
        """Test every accepted date format."""
        assert parse_calendar_date(raw) == date(2024, 3, 5)
    
    @pytest.mark.parametrize("raw", ["2024-02-30", "", "hier", None, 20240305])
    def test_invalid_dates(self, raw):
        """Test impossible dates and junk are rejected."""
        assert parse_calendar_date(raw) is None


class TestVatTable:
    """Tests for the closed VAT table."""
    
    def test_known_rates(self):
        """Test the three supported rates and their codes."""
        assert lookup_vat("20").tax_code == "TN"
        assert lookup_vat("20").tax_account == "44566200"
        assert lookup_vat("10").tax_code == "TI"
        assert lookup_vat("10").tax_account == "44566100"
        assert lookup_vat("0").tax_code == ""
        assert lookup_vat("0").tax_account == ""
    
    def test_accepts_integer_rate(self):
        """Test a numeric rate identifier is read as text."""
        assert lookup_vat(10).rate == "10"
    
    @pytest.mark.parametrize("rate", ["5.5", "19.6", "", None, "20%", "abc"])
    def test_unknown_rates_rejected(self, rate):
        """Test unknown rates never fall back to another row."""
        with pytest.raises(ValidationError) as info:
            lookup_vat(rate)
        assert info.value.field == "tva_rate"


class TestChargesAccounts:
    """Tests for category x VAT rate resolution."""
    
    @pytest.mark.parametrize("category, rate, account", [
        ("petites_fournitures", "20", "60631000"),
        ("petites_fournitures", "10", "60630000"),
        ("carburant", "20", "60614000"),
        ("repas_pro", "10", "62511000"),
        ("repas", "0", "62510000"),
        ("papeterie", "20", "60640000"),
        ("peages", "20", "62512000"),
        ("parking", "20", "62512000"),
    ])
    def test_known_combinations(self, category, rate, account):
        """Test every listed pair resolves to its account."""
        assert resolve_charges_account(category, rate) == account
    
    def test_table_is_total_and_closed(self):
        """Test every other category x rate pair is rejected."""
        for category in SpendingCategory:
            for rate in VAT_TABLE:
                if (category, rate) in CHARGES_ACCOUNTS:
                    assert resolve_charges_account(category, rate)
                else:
                    with pytest.raises(ValidationError):
                        resolve_charges_account(category, rate)
    
    def test_supported_combinations_match_table(self):
        """Test the exported combinations."""
        assert set(supported_combinations()) == set(CHARGES_ACCOUNTS)
    
    def test_unknown_category(self):
        """Test categories outside the enum are rejected."""
        with pytest.raises(ValidationError) as info:
            resolve_charges_account("divers", "20")
        assert info.value.field == "categorie_ui"
    
    def test_invalid_pair_has_no_default(self):
        """Test a valid category at an unsupported rate."""
        with pytest.raises(ValidationError, match="repas_pro at 20"):
            resolve_charges_account("repas_pro", "20")


class TestKeywordSuggestion:
    """Tests for the keyword classifier."""
    
    @pytest.mark.parametrize("text, category, supplier, rate", [
        ("Brasserie du Port", SpendingCategory.REPAS_PRO, "FREPAS", "10"),
        ("RESTAURANT LE ZINC menu", SpendingCategory.REPAS_PRO, "FREPAS", "10"),
        ("TOTAL ENERGIES gazole", SpendingCategory.CARBURANT, "FCARBU", "20"),
        ("Station SP 98", SpendingCategory.CARBURANT, "FCARBU", "20"),
        ("INDIGO Parking Gare", SpendingCategory.PARKING, "FPARKING", "20"),
        ("VINCI Autoroutes Péage", SpendingCategory.PEAGES, "FPEAGE", "20"),
        ("SANEF", SpendingCategory.PEAGES, "FPEAGE", "20"),
    ])
    def test_keyword_matches(self, text, category, supplier, rate):
        """Test each keyword family."""
        suggestion = suggest_from_text(text)
        assert suggestion.category == category
        assert suggestion.supplier_account == supplier
        assert suggestion.vat_rate == rate
    
    def test_no_match_defaults(self):
        """Test unmatched text gives the generic supplier and no category."""
        suggestion = suggest_from_text("Librairie Decitre")
        assert suggestion.category is None
        assert suggestion.supplier_account == "FDIVERS"
        assert suggestion.vat_rate is None
    
    def test_short_keywords_are_whole_words(self):
        """Test "go" does not match inside another word."""
        assert suggest_from_text("Cargo Express").category is None
        assert suggest_from_text("GO 45L").category == SpendingCategory.CARBURANT
    
    def test_first_rule_wins(self):
        """Test precedence when several families match."""
        suggestion = suggest_from_text("restaurant parking")
        assert suggestion.category == SpendingCategory.REPAS_PRO
    
    def test_empty_text(self):
        """Test None and empty text."""
        assert suggest_from_text(None).supplier_account == "FDIVERS"
        assert suggest_from_text("").category is None


class TestVatGuess:
    """Tests for the tax / pre-tax ratio guess."""
    
    @pytest.mark.parametrize("ht, tva, expected", [
        (100, 20, "20"),
        (100, 22, "20"),
        (100, 10, "10"),
        (100, 11, "10"),
        (100, 0, "0"),
        (100, 15, None),
        (100, 5.5, None),
        (0, 0, None),
        (None, 20, None),
        (100, None, None),
        (100, -2, None),
        ("100,00", "20,00", "20"),
    ])
    def test_ratio(self, ht, tva, expected):
        """Test the guessed rate for various amounts."""
        assert guess_vat_rate(ht, tva) == expected
    
    def test_ratio_overrides_keyword_rate(self):
        """Test the ratio guess wins over the keyword rate."""
        extraction = ExtractionResult(
            raison_sociale="Brasserie du Port",
            montant_ht=100,
            montant_tva=20,
        )
        suggestion = suggest(extraction)
        assert suggestion.category == SpendingCategory.REPAS_PRO
        assert suggestion.supplier_account == "FREPAS"
        assert suggestion.vat_rate == "20"
    
    def test_keyword_rate_kept_without_ratio(self):
        """Test the keyword rate is used when the ratio is inconclusive."""
        extraction = ExtractionResult(mots_cles=["parking"], montant_ht=100, montant_tva=15)
        assert suggest(extraction).vat_rate == "20"
    
    def test_keywords_are_searched(self):
        """Test extracted keywords count as much as the merchant name."""
        extraction = ExtractionResult(raison_sociale="SARL Dupont", mots_cles=["stationnement"])
        assert suggest(extraction).category == SpendingCategory.PARKING


class TestEntryBuilder:
    """Tests for build_ledger_entry."""
    
    def _build(self, **overrides):
        arguments = dict(
            journal="AC",
            reference_id="9001",
            document_date="2024-03-05",
            ticket_number="T-42",
            supplier_account="FDIVERS",
            payee_label="SHOP",
            charges_account="60631000",
            tax_code="TN",
            tax_liability_account="44566200",
            total_including_tax="120,00",
            total_excluding_tax="100,00",
            tax_amount="20,00",
        )
        arguments.update(overrides)
        return build_ledger_entry(**arguments)
    
    def test_three_line_entry(self):
        """Test a 20% receipt produces supplier, charges and VAT lines."""
        entry = self._build()
        
        assert entry.journal == "AC"
        assert entry.month == 3
        assert entry.year == 2024
        assert entry.reference_id == "9001"
        assert len(entry.lines) == 3
        
        supplier, charges, vat = entry.lines
        assert supplier.account == "FDIVERS"
        assert supplier.credit == Decimal("120.00")
        assert supplier.payment_method == ""
        assert charges.account == "60631000"
        assert charges.debit == Decimal("100.00")
        assert charges.tax_code == "TN"
        assert vat.account == "44566200"
        assert vat.debit == Decimal("20.00")
        
        for line in entry.lines:
            assert line.day == 5
            assert line.invoice_number == "T-42"
            assert line.label == "SHOP"
            assert line.piece_number == "001"
        
        assert entry.is_balanced
        assert entry.total_credit == entry.total_debit == Decimal("120.00")
    
    def test_tax_derived_when_missing(self):
        """Test TVA = TTC - HT when the tax amount is not given."""
        entry = self._build(tax_amount=None, total_including_tax="110,00", tax_code="TI",
                            tax_liability_account="44566100", charges_account="62511000")
        assert entry.lines[2].debit == Decimal("10.00")
        assert entry.lines[2].account == "44566100"
    
    def test_zero_rated_has_two_lines(self):
        """Test no VAT line and no VAT code at 0%."""
        entry = self._build(
            charges_account="62510000",
            tax_code="",
            tax_liability_account="",
            total_including_tax=15,
            total_excluding_tax=15,
            tax_amount=0,
        )
        assert len(entry.lines) == 2
        assert entry.lines[1].tax_code is None
        assert "codeTVA" not in entry.to_payload()["lignesEcriture"][1]
    
    def test_unbalanced_amounts_rejected(self):
        """Test TTC != HT + TVA fails before anything is built."""
        with pytest.raises(ValidationError) as info:
            self._build(tax_amount="19,00")
        assert info.value.field == "montant_ttc"
        assert info.value.details == {"credit": "120.00", "debit": "119.00"}
    
    def test_negative_derived_tax_rejected(self):
        """Test HT greater than TTC cannot balance."""
        with pytest.raises(ValidationError):
            self._build(tax_amount=None, total_excluding_tax="130,00")
    
    def test_invalid_date(self):
        """Test an impossible date is rejected."""
        with pytest.raises(ValidationError) as info:
            self._build(document_date="2024-02-30")
        assert info.value.field == "date_ticket"
    
    @pytest.mark.parametrize("field, overrides", [
        ("montant_ttc", {"total_including_tax": "0"}),
        ("montant_ttc", {"total_including_tax": "abc"}),
        ("ht", {"total_excluding_tax": None}),
    ])
    def test_amounts_must_be_positive(self, field, overrides):
        """Test missing, zero or non-numeric totals."""
        with pytest.raises(ValidationError) as info:
            self._build(**overrides)
        assert info.value.field == field
    
    def test_vat_without_account_rejected(self):
        """Test a taxed receipt needs a VAT account."""
        with pytest.raises(ValidationError) as info:
            self._build(tax_liability_account="")
        assert info.value.field == "compte_tva"
    
    def test_amounts_rounded_to_cents(self):
        """Test inputs are rounded before the balance check."""
        entry = self._build(
            total_including_tax="12.004",
            total_excluding_tax="10.001",
            tax_amount="2.00",
        )
        assert entry.lines[0].credit == Decimal("12.00")
        assert entry.lines[1].debit == Decimal("10.00")
    
    def test_derived_tax_uses_rounded_totals(self):
        """Test tax derived from three-decimal totals still balances."""
        entry = self._build(
            tax_amount=None,
            total_including_tax="12.005",
            total_excluding_tax="10.004",
        )
        assert [line.credit + line.debit for line in entry.lines] == [
            Decimal("12.01"), Decimal("10.00"), Decimal("2.01"),
        ]
        assert entry.is_balanced
    
    @pytest.mark.parametrize("field, overrides", [
        ("montant_ttc", {"total_including_tax": "1e30", "total_excluding_tax": "1e30"}),
        ("montant_ttc", {"total_including_tax": 1e300}),
        ("ht", {"total_excluding_tax": "1e13"}),
        ("tva_montant", {"tax_amount": "1e40"}),
    ])
    def test_huge_amounts_rejected(self, field, overrides):
        """Test out-of-range amounts fail on their field instead of crashing."""
        with pytest.raises(ValidationError) as info:
            self._build(**overrides)
        assert info.value.field == field
    
    def test_derive_tax_amount(self):
        """Test derive_tax_amount edge cases."""
        assert derive_tax_amount(Decimal("12"), Decimal("10")) == Decimal("2")
        assert derive_tax_amount(Decimal("10"), Decimal("12")) is None
        assert derive_tax_amount(None, Decimal("10")) is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
