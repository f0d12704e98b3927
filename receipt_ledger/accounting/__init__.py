"""
Accounting rules: amounts, VAT table, charges accounts, heuristics and
the ledger entry builder.

Submodules are imported directly (`receipt_ledger.accounting.vat`, ...)
because the models package depends on `accounting.numbers`.
"""
