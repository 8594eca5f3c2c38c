"""
FDA Data Transformer

Normalizes FDA Press Release and MedWatch RSS feeds.
"""

from .transformer import FDATransformer

__all__ = ["FDATransformer"]
