"""Cyclica cultural fit assessment API."""

__version__ = "1.0.0"
