"""
Pydantic schemas for extraction output.

Field names are snake_case in Python and camelCase on the wire (the JSON the
model returns and the dicts the tools hand back). Unknown keys the model adds
are kept rather than rejected. No-data sentinels ("N/A" and friends) become
None after coercion, including items of list-valued answers.
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pv_agent.pipeline.extraction.extraction_schema import NO_DATA_SENTINELS

_TEXT_FIELDS = (
    "drug_name",
    "adverse_event_description",
    "severity",
    "symptoms",
    "patient_age",
    "patient_gender",
    "medical_history",
    "concomitant_medications",
    "date_of_onset",
    "outcome",
    "reporter_name",
    "reporter_type",
    "additional_notes",
)


def _is_sentinel(value: str) -> bool:
    return value.strip().lower() in NO_DATA_SENTINELS


class ExtractedRecord(BaseModel):
    """Structured fields pulled out of one report. Absent data is None."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    drug_name: Optional[str] = None
    adverse_event_description: Optional[str] = None
    severity: Optional[str] = None
    symptoms: Optional[str] = None
    patient_age: Optional[str] = None
    patient_gender: Optional[str] = None
    medical_history: Optional[str] = None
    concomitant_medications: Optional[str] = None
    date_of_onset: Optional[str] = None
    outcome: Optional[str] = None
    reporter_name: Optional[str] = None
    reporter_type: Optional[str] = None
    additional_notes: Optional[str] = None

    # Set only on degraded records, when the model output could not be used
    extraction_error: Optional[str] = None
    raw_response: Optional[str] = None

    @field_validator(*_TEXT_FIELDS, mode="before")
    @classmethod
    def _coerce_to_text(cls, value: Any) -> Any:
        """Models sometimes answer with lists or numbers (e.g. symptoms, age)."""
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, list):
            items = [str(item) for item in value if item is not None and not _is_sentinel(str(item))]
            return ", ".join(items) or None
        if isinstance(value, dict):
            return json.dumps(value)
        return str(value)

    @field_validator(*_TEXT_FIELDS, mode="after")
    @classmethod
    def _sentinel_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and _is_sentinel(value):
            return None
        return value

    @classmethod
    def degraded(cls, error: str, raw_response: str = "") -> "ExtractedRecord":
        return cls(extraction_error=error, raw_response=raw_response)

    @property
    def is_degraded(self) -> bool:
        return self.extraction_error is not None

    def to_dict(self) -> dict:
        """camelCase dict; degraded records carry only the error fields."""
        return self.model_dump(by_alias=True, exclude_none=self.is_degraded)


class EnrichedRecord(ExtractedRecord):
    """ExtractedRecord stamped with extraction metadata and a validity verdict."""

    extraction_timestamp: str = Field(description="UTC ISO8601 time of enrichment")
    extraction_source: str = Field(description="Model identifier, e.g. Ollama-llama3.1:8b")
    is_valid: bool
    validation_error: Optional[str] = None

    def to_dict(self) -> dict:
        data = self.model_dump(by_alias=True)
        if not self.is_degraded:
            data.pop("extractionError", None)
            data.pop("rawResponse", None)
        if self.validation_error is None:
            data.pop("validationError", None)
        return data
