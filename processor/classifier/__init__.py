from .classifier import RelevanceClassifier, clamp_int
from .fallback import FALLBACK_TABLE, fallback_outcome
from .models import ClassificationOutcome

__all__ = [
    "RelevanceClassifier",
    "ClassificationOutcome",
    "FALLBACK_TABLE",
    "fallback_outcome",
    "clamp_int",
]
