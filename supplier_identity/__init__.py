"""Supplier item identity resolution and correction workflow engine."""

__version__ = "0.1.0"
