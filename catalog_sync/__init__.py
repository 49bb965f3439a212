"""
catalog-sync: keeps an offline mirror of a spreadsheet-backed product catalog
and its media, re-fetching only what changed upstream.
"""

__version__ = "0.1.0"
