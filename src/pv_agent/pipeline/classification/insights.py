"""
Pull a short insight and recommendation out of a free-text analysis.

Preferred source is the trailing ```json {"keyFactors": ..., "recommendations": ...}```
block the prompts ask for. Models do not always comply, so the fallback is a
plain search for "Key factors:" / "Recommendations:" lines, and after that a
fixed placeholder.
"""

import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

INSIGHTS_MARKER = "Key factors:"
RECOMMENDATIONS_MARKER = "Recommendations:"
INSIGHTS_PLACEHOLDER = "AI-generated insights from the analysis"
RECOMMENDATIONS_PLACEHOLDER = "AI-generated recommendations from the analysis"

_JSON_FENCE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.S)


class AnalysisHighlights(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    key_factors: Optional[str] = None
    recommendations: Optional[str] = None

    @field_validator("key_factors", "recommendations", mode="before")
    @classmethod
    def _join_lists(cls, value: Any) -> Any:
        if isinstance(value, list):
            return "; ".join(str(item) for item in value)
        return value


def parse_highlights(response: str) -> Optional[AnalysisHighlights]:
    """Read the last fenced JSON object in the response, if any."""
    blocks = _JSON_FENCE.findall(response or "")
    if not blocks:
        return None
    try:
        return AnalysisHighlights.model_validate(json.loads(blocks[-1]))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.debug(f"Ignoring malformed highlights block: {e}")
        return None


def _line_from_marker(response: str, marker: str) -> Optional[str]:
    start = response.find(marker)
    if start < 0:
        return None
    end = response.find("\n", start)
    line = response[start:] if end < 0 else response[start:end]
    return line.strip()


def extract_insights(response: str) -> str:
    highlights = parse_highlights(response)
    if highlights and highlights.key_factors:
        return highlights.key_factors
    return _line_from_marker(response or "", INSIGHTS_MARKER) or INSIGHTS_PLACEHOLDER


def extract_recommendations(response: str) -> str:
    highlights = parse_highlights(response)
    if highlights and highlights.recommendations:
        return highlights.recommendations
    return _line_from_marker(response or "", RECOMMENDATIONS_MARKER) or RECOMMENDATIONS_PLACEHOLDER
