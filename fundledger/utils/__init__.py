"""
Fund Ledger - Utilities Package
"""
