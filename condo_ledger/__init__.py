"""Condominium dues ledger: payment allocation, house balances and status views."""

__version__ = "0.1.0"
