"""Crypto package checkout, settlement and multi-level commission engine."""

__version__ = "1.0.0"
