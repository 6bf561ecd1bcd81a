"""
Loan Tracker

Tracks informal loans and shared expenses between people and groups:
lump-sum, group-split and installment repayment, with late-fee penalties
and reconciliation of outstanding balances from recorded payments.
"""

__version__ = "1.0.0"
