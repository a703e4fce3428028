"""
Adverse event pipeline: text normalization, LLM extraction, validation and classification.
"""

from .llm_client import OllamaLLMClient
from .extraction import AdverseEventExtractor, EnrichedRecord, ExtractedRecord
from .classification import AdverseEventClassifier

__all__ = [
    'OllamaLLMClient',
    'AdverseEventExtractor',
    'EnrichedRecord',
    'ExtractedRecord',
    'AdverseEventClassifier',
]
