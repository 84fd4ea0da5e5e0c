"""
taxledger - Source Package

A personal income, tax and record-keeping ledger for a single user:
multi-currency income payments normalized to a home currency, monthly and
yearly running totals with a flat tax, personal debts and vehicle
maintenance records.

DESIGN PRINCIPLES:
1. Converted amounts are frozen at entry time
2. Summaries are a recompute-on-write cache of the payment set
3. One user action = one storage transaction
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "taxledger Team"
