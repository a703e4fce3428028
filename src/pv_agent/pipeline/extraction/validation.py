from pv_agent.core.utils import now_utc_iso
from pv_agent.pipeline.extraction.extraction_schema import REQUIRED_FIELDS
from pv_agent.pipeline.extraction.schemas import EnrichedRecord, ExtractedRecord

MISSING_REQUIRED_FIELDS = f"Missing required fields: {' and '.join(REQUIRED_FIELDS)}"

# Keys owned by enrichment; a model that invents them must not override the verdict
_ENRICHMENT_KEYS = {
    "extractionTimestamp", "extractionSource", "isValid", "validationError",
    "extraction_timestamp", "extraction_source", "is_valid", "validation_error",
}


def validate_and_enrich(record: ExtractedRecord, extraction_source: str) -> EnrichedRecord:
    """
    Stamp extraction metadata and mark the record valid iff both drug name
    and event description are present. Pure: no I/O, no model calls.
    """
    is_valid = record.drug_name is not None and record.adverse_event_description is not None
    fields = {k: v for k, v in record.model_dump().items() if k not in _ENRICHMENT_KEYS}
    return EnrichedRecord(
        **fields,
        extraction_timestamp=now_utc_iso(),
        extraction_source=extraction_source,
        is_valid=is_valid,
        validation_error=None if is_valid else MISSING_REQUIRED_FIELDS,
    )
