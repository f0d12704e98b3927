"""
Receipt Ledger - Source Package

Turns a scanned receipt or invoice into a balanced accounting entry
posted to the CNX ledger API.

DESIGN PRINCIPLES:
1. AI suggests → Operator confirms → System verifies
2. Fail early, fail visibly
3. No silent corrections to money
4. Every posted entry balances
5. External services are collaborators behind narrow clients
"""

__version__ = "1.0.0"
__author__ = "Receipt Ledger Team"
