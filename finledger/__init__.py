"""
finledger - Source Package

A personal finance tracker: a single-user ledger of income, expenses and
debts kept in a local JSON blob, plus shared group expenses kept in a
remote spreadsheet.

DESIGN PRINCIPLES:
1. State is an explicit value, changed only by pure reducers
2. Fail early, fail visibly (bad input never reaches the ledger)
3. Derived numbers are recomputed, never stored
4. Persistence failures never cost the user the session
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "finledger Team"
