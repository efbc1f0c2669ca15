"""Stillhouse Ledger - bulk spirit inventory engine."""

__version__ = "1.0.0"
