"""
Processor package for the Regulatory Catalyst Dashboard.

Two-stage LLM pipeline over queued announcements:
- CompanyFilter: screen out announcements without a listed issuer
- RelevanceClassifier: score trading relevance and sentiment

Main entry points: IngestionPipeline, ClassificationPipeline, run_pipeline
"""

from .classifier import RelevanceClassifier, ClassificationOutcome, fallback_outcome
from .company_filter import CompanyFilter, CompanyCandidate, CompanyScreening
from .ingestion import IngestionWriter, IngestSummary
from .output_parser import OutputParseError, extract_json_array
from .pipeline import (
    FAMILIES,
    ConfigurationError,
    ensure_database,
    ProcessSummary,
    IngestionPipeline,
    ClassificationPipeline,
    run_pipeline,
)

__all__ = [
    # Pipeline
    "FAMILIES",
    "ConfigurationError",
    "ensure_database",
    "ProcessSummary",
    "IngestionPipeline",
    "ClassificationPipeline",
    "run_pipeline",
    # Ingestion
    "IngestionWriter",
    "IngestSummary",
    # Screening
    "CompanyFilter",
    "CompanyCandidate",
    "CompanyScreening",
    # Classification
    "RelevanceClassifier",
    "ClassificationOutcome",
    "fallback_outcome",
    # Utilities
    "OutputParseError",
    "extract_json_array",
]
