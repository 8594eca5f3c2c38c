"""
openFDA Data Transformer

Normalizes openFDA drug approval, enforcement and 510(k) search results.
"""

from .transformer import OpenFDATransformer

__all__ = ["OpenFDATransformer"]
