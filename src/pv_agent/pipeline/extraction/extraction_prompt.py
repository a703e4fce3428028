"""
Prompt template for adverse event extraction.

Positions the LLM as a pharmacovigilance expert and asks for a single JSON
object with the fields from EXTRACTION_FIELDS, using "Not mentioned" for
anything the source does not state.
"""

import json

from pv_agent.pipeline.extraction.extraction_schema import EXTRACTION_FIELDS

SYSTEM_PROMPT = (
    "You are a pharmacovigilance expert specialized in extracting structured adverse event "
    "data from unstructured text. Always respond with valid JSON."
)

PROMPT_TEMPLATE = """You are a pharmacovigilance expert. Extract adverse event information from the following {source_type}.

Text Content:
{text}

Extract the following information in JSON format:
{field_block}

Important instructions:
- Extract only information that is explicitly mentioned in the text
- Use "Not mentioned" for fields where information is not available
- For severity, make your best assessment based on the description; it must be one of MILD, MODERATE, SEVERE, LIFE_THREATENING, FATAL
- Ensure the response is valid JSON
- Be precise and factual

Return ONLY the JSON object, no additional text or explanation.
"""

FIELD_BLOCK = json.dumps(EXTRACTION_FIELDS, indent=2)


def build_extraction_prompt(text: str, source_type: str) -> str:
    return PROMPT_TEMPLATE.format(source_type=source_type, text=text, field_block=FIELD_BLOCK)
