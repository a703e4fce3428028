"""
Extraction module.

Contains the LLM-based extraction components:
- extraction_schema: target field list and "no data" sentinels
- extraction_prompt: prompt template and system instruction
- schemas: ExtractedRecord / EnrichedRecord pydantic models
- extractor: AdverseEventExtractor (prompt -> model -> record)
- validation: required-field check and metadata stamping
"""

from .extraction_schema import EXTRACTION_FIELDS, REQUIRED_FIELDS
from .extraction_prompt import PROMPT_TEMPLATE, SYSTEM_PROMPT, build_extraction_prompt
from .schemas import EnrichedRecord, ExtractedRecord
from .extractor import AdverseEventExtractor, normalize_sentinels, parse_extraction_response
from .validation import validate_and_enrich

__all__ = [
    'EXTRACTION_FIELDS',
    'REQUIRED_FIELDS',
    'PROMPT_TEMPLATE',
    'SYSTEM_PROMPT',
    'build_extraction_prompt',
    'EnrichedRecord',
    'ExtractedRecord',
    'AdverseEventExtractor',
    'normalize_sentinels',
    'parse_extraction_response',
    'validate_and_enrich',
]
