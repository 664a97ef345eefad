"""Loyalty ledger and promotions API."""

__version__ = "0.1.0"
