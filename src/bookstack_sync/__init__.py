"""Markdown <-> BookStack wiki synchronisation."""

__version__ = "1.0.0"
