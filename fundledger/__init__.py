"""
Fund Ledger

Two-account cash ledger with recurring billing, payment status
transitions and expense / transaction bookkeeping.
"""

__version__ = "1.0.0"
