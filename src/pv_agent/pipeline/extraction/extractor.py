"""
LLM-based adverse event extraction.

Builds a source-specific prompt, calls the model once, and maps the JSON it
returns onto ExtractedRecord. Model failures and unusable output never escape
extract(): they come back as a degraded record carrying extractionError.
"""

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from pv_agent.core.config import EXTRACTION_MAX_TOKENS, EXTRACTION_TEMPERATURE
from pv_agent.core.exceptions import ExtractionParseError, ModelCallError
from pv_agent.core.metrics import get_metrics
from pv_agent.pipeline.extraction.extraction_prompt import SYSTEM_PROMPT, build_extraction_prompt
from pv_agent.pipeline.extraction.extraction_schema import NO_DATA_SENTINELS
from pv_agent.pipeline.extraction.schemas import EnrichedRecord, ExtractedRecord
from pv_agent.pipeline.extraction.validation import validate_and_enrich
from pv_agent.pipeline.parsing.document_parser import (
    SOURCE_CLINICAL_DOCUMENT,
    EmailSource,
    NormalizedText,
    TranscriptSource,
    normalize,
)

logger = logging.getLogger(__name__)


def strip_code_fences(response: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) wrapper if present."""
    cleaned = response.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def normalize_sentinels(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map "Not mentioned" / "Not available" / "N/A" (any case) to None."""
    return {
        key: None if isinstance(value, str) and value.strip().lower() in NO_DATA_SENTINELS else value
        for key, value in data.items()
    }


def parse_extraction_response(response: str) -> ExtractedRecord:
    """
    Parse the model's answer into an ExtractedRecord.

    Raises:
        ExtractionParseError: not JSON, not a JSON object, or not mappable to the schema
    """
    try:
        parsed = json.loads(strip_code_fences(response))
    except json.JSONDecodeError as e:
        raise ExtractionParseError(str(e), raw_response=response) from e

    if not isinstance(parsed, dict):
        raise ExtractionParseError(
            f"expected a JSON object, got {type(parsed).__name__}", raw_response=response
        )

    try:
        return ExtractedRecord.model_validate(normalize_sentinels(parsed))
    except PydanticValidationError as e:
        raise ExtractionParseError(str(e), raw_response=response) from e


class AdverseEventExtractor:
    """
    Extracts structured adverse event data from normalized report text.

    Args:
        llm_client: anything with complete(user_prompt, system_prompt, max_tokens, temperature)
            and a model_name attribute (OllamaLLMClient in production)
    """

    def __init__(
        self,
        llm_client,
        temperature: float = EXTRACTION_TEMPERATURE,
        max_tokens: int = EXTRACTION_MAX_TOKENS,
    ):
        self.llm_client = llm_client
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def extraction_source(self) -> str:
        return f"Ollama-{self.llm_client.model_name}"

    def extract(self, normalized: NormalizedText) -> ExtractedRecord:
        logger.info(
            f"Extracting adverse event from {normalized.source_type} with text length: {len(normalized.text)}"
        )
        metrics = get_metrics()
        prompt = build_extraction_prompt(normalized.text, normalized.source_type)

        try:
            response = self.llm_client.complete(
                prompt,
                system_prompt=SYSTEM_PROMPT,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except ModelCallError as e:
            logger.error(f"Extraction model call failed: {e}")
            metrics.increment("extractions", labels={"outcome": "degraded"})
            return ExtractedRecord.degraded(f"Failed to extract adverse event data: {e}")

        try:
            record = parse_extraction_response(response)
        except ExtractionParseError as e:
            logger.error(f"Error parsing AI response: {e}")
            logger.debug(f"Unparsed response (first 1000 chars): {response[:1000]}")
            metrics.increment("extractions", labels={"outcome": "degraded"})
            return ExtractedRecord.degraded(f"Failed to parse AI response: {e}", e.raw_response)

        metrics.increment("extractions", labels={"outcome": "ok"})
        logger.info(
            f"Successfully extracted adverse event data with "
            f"{len(record.model_dump(exclude_none=True))} fields"
        )
        return record

    def extract_from_text(self, text: str, source_type: str) -> ExtractedRecord:
        return self.extract(NormalizedText(text, source_type))

    def extract_from_clinical_document(self, document_text: str) -> ExtractedRecord:
        return self.extract_from_text(document_text, SOURCE_CLINICAL_DOCUMENT)

    def extract_from_email(self, subject: str, body: str, sender: Optional[str] = None) -> ExtractedRecord:
        return self.extract(normalize(EmailSource(subject=subject, body=body, sender=sender)))

    def extract_from_telephony_transcript(self, transcript: str, caller_info: Optional[str] = None) -> ExtractedRecord:
        return self.extract(normalize(TranscriptSource(transcript=transcript, caller_info=caller_info)))

    def validate_and_enrich(self, record: ExtractedRecord) -> EnrichedRecord:
        return validate_and_enrich(record, self.extraction_source)
