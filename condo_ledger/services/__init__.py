"""Ledger services: repositories, use cases and wiring."""
