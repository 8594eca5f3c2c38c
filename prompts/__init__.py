"""
Prompts Module - Centralized prompt management.

Prompt Files:
- company_filter_system.md / company_filter.md: public-company screening
- classification_system.md / classification.md: relevance classification
"""

from ._loader import PromptLoader, get_prompt

__all__ = [
    "PromptLoader",
    "get_prompt",
]
