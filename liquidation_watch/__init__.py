"""Aave V3 liquidation opportunity monitor."""

__version__ = "0.1.0"
