"""
Typed request models for the tool invocation surface.

Callers send a flat camelCase parameter mapping; ToolServer adds the tool
name and validates the result against TOOL_REQUEST_ADAPTER before any
pipeline code runs.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

Severity = Literal["MILD", "MODERATE", "SEVERE", "LIFE_THREATENING", "FATAL"]
EventStatus = Literal["NEW", "UNDER_INVESTIGATION", "CONFIRMED", "REJECTED", "CLOSED"]


class ToolRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class GetAdverseEventsRequest(ToolRequest):
    """Get adverse events filtered by severity, status, drug name or patient id."""

    tool: Literal["get_adverse_events"] = "get_adverse_events"
    severity: Optional[Severity] = None
    status: Optional[EventStatus] = None
    drug_name: Optional[str] = None
    patient_id: Optional[str] = None


class GetPatientInfoRequest(ToolRequest):
    """Get patient information by external patient id."""

    tool: Literal["get_patient_info"] = "get_patient_info"
    patient_id: str


class GetDrugInfoRequest(ToolRequest):
    """Get drug information by drug code or (partial) drug name."""

    tool: Literal["get_drug_info"] = "get_drug_info"
    drug_code: Optional[str] = None
    drug_name: Optional[str] = None

    @model_validator(mode="after")
    def _code_or_name(self):
        if self.drug_code is None and self.drug_name is None:
            raise ValueError("Either drugCode or drugName is required")
        return self


class CreateAdverseEventRequest(ToolRequest):
    """Create an adverse event and trigger automated processing."""

    tool: Literal["create_adverse_event"] = "create_adverse_event"
    case_number: Optional[str] = None
    drug_name: str
    adverse_event_description: str
    severity: Optional[Severity] = None
    status: EventStatus = "NEW"
    symptoms: Optional[str] = None
    medical_history: Optional[str] = None
    concomitant_medications: Optional[str] = None
    reporter_notes: Optional[str] = None
    event_date: Optional[str] = None
    report_date: Optional[str] = None
    patient_id: Optional[str] = None
    drug_id: Optional[int] = None


class UpdateAdverseEventStatusRequest(ToolRequest):
    """Update the status of an adverse event."""

    tool: Literal["update_adverse_event_status"] = "update_adverse_event_status"
    event_id: int
    status: EventStatus


class GetStatisticsRequest(ToolRequest):
    """Get adverse event counts by severity and status, and store totals."""

    tool: Literal["get_statistics"] = "get_statistics"


class ClassifyAdverseEventRequest(ToolRequest):
    """Run causality and risk analysis on a stored adverse event."""

    tool: Literal["classify_adverse_event"] = "classify_adverse_event"
    event_id: int


class ClassifyEventFromInputRequest(ToolRequest):
    """Run causality and risk analysis on raw event fields without storing an event."""

    tool: Literal["classify_event_from_input"] = "classify_event_from_input"
    case_number: Optional[str] = None
    drug_name: str
    adverse_event_description: str
    severity: Optional[str] = None
    symptoms: Optional[str] = None
    medical_history: Optional[str] = None
    concomitant_medications: Optional[str] = None
    patient_id: Optional[str] = None


class ClassifyFromPdfRequest(ToolRequest):
    """Extract and classify an adverse event from a Base64 encoded PDF."""

    tool: Literal["classify_from_pdf"] = "classify_from_pdf"
    pdf_content: str
    file_name: str = "document.pdf"


class ClassifyFromEmailRequest(ToolRequest):
    """Extract and classify an adverse event from an email (.eml as Base64, or subject and body)."""

    tool: Literal["classify_from_email"] = "classify_from_email"
    subject: Optional[str] = None
    body: Optional[str] = None
    sender: str = "Unknown"
    eml_content: Optional[str] = None

    @model_validator(mode="after")
    def _eml_or_subject_and_body(self):
        if self.eml_content is None and (self.subject is None or self.body is None):
            raise ValueError("Either emlContent or both subject and body are required")
        return self


class ClassifyFromTelephonyTranscriptRequest(ToolRequest):
    """Extract and classify an adverse event from a call transcript."""

    tool: Literal["classify_from_telephony_transcript"] = "classify_from_telephony_transcript"
    transcript: str
    caller_info: str = "Unknown caller"
    call_id: Optional[str] = None


class ClassifyFromDocumentRequest(ToolRequest):
    """Extract and classify an adverse event from a Base64 encoded document (PDF, Word, text, email, HTML)."""

    tool: Literal["classify_from_document"] = "classify_from_document"
    document_content: str
    file_name: str = "document"
    document_type: str = "auto"


REQUEST_MODELS = (
    GetAdverseEventsRequest,
    GetPatientInfoRequest,
    GetDrugInfoRequest,
    CreateAdverseEventRequest,
    UpdateAdverseEventStatusRequest,
    GetStatisticsRequest,
    ClassifyAdverseEventRequest,
    ClassifyEventFromInputRequest,
    ClassifyFromPdfRequest,
    ClassifyFromEmailRequest,
    ClassifyFromTelephonyTranscriptRequest,
    ClassifyFromDocumentRequest,
)

AnyToolRequest = Annotated[
    Union[
        GetAdverseEventsRequest,
        GetPatientInfoRequest,
        GetDrugInfoRequest,
        CreateAdverseEventRequest,
        UpdateAdverseEventStatusRequest,
        GetStatisticsRequest,
        ClassifyAdverseEventRequest,
        ClassifyEventFromInputRequest,
        ClassifyFromPdfRequest,
        ClassifyFromEmailRequest,
        ClassifyFromTelephonyTranscriptRequest,
        ClassifyFromDocumentRequest,
    ],
    Field(discriminator="tool"),
]

TOOL_REQUEST_ADAPTER = TypeAdapter(AnyToolRequest)

TOOL_NAMES = tuple(model.model_fields["tool"].default for model in REQUEST_MODELS)
