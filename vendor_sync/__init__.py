"""Euler oracle vendor sync engine."""

__version__ = "0.1.0"
