"""Apartment ledger and bank-reconciliation engine for condominium administration."""

__version__ = "0.1.0"
