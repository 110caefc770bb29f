"""
Fixed-Deposit Settlement Core

Token ledger, interest accrual and redemption settlement for a fixed-deposit
banking product. All monetary arithmetic uses Decimal.
"""

__version__ = "1.0.0"
