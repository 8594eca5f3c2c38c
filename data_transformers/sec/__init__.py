"""
SEC Data Transformer

Normalizes the EDGAR current filings Atom feed.
"""

from .transformer import SECTransformer

__all__ = ["SECTransformer"]
