"""Arbitrated Escrow: two-party escrow with third-party arbitration."""

__version__ = "0.1.0"
