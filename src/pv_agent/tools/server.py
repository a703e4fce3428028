"""
Tool invocation surface for the pharmacovigilance pipeline.

One tool per pipeline capability. Every call takes a flat parameter mapping
and returns {"success": bool, "data" | "error": ..., ...}; no exception
crosses this boundary.
"""

import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from pv_agent.core.config import DB_PATH, EXTRACTED_TEXT_PREVIEW_CHARS
from pv_agent.core.db import (
    count_events_by_severity,
    count_events_by_status,
    count_rows,
    find_drug_by_code,
    find_drugs_by_name,
    find_events_by_criteria,
    find_patient_by_patient_id,
    get_connection,
    get_event_by_id,
    save_event,
    update_event_status,
)
from pv_agent.core.models import AdverseEvent
from pv_agent.core.utils import epoch_millis
from pv_agent.pipeline.extraction.schemas import EnrichedRecord, ExtractedRecord
from pv_agent.pipeline.parsing.document_parser import (
    DocumentSource,
    EmailSource,
    PdfSource,
    TranscriptSource,
    decode_base64,
    normalize,
    parse_email_bytes,
)
from pv_agent.tools import requests as rq

logger = logging.getLogger(__name__)


def _success(data: Any = None, **extra) -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": True}
    if data is not None:
        result["data"] = data
    result.update(extra)
    return result


def _error(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}


def _format_validation_error(error: ValidationError, tool_name: str) -> str:
    messages = []
    for item in error.errors():
        field = next((str(p) for p in reversed(item["loc"]) if str(p) != tool_name), None)
        if item["type"] == "missing":
            messages.append(f"{field} is required")
        elif item["type"] == "value_error" and "error" in item.get("ctx", {}):
            messages.append(str(item["ctx"]["error"]))
        else:
            messages.append(f"{field}: {item['msg']}" if field else item["msg"])
    return "; ".join(messages)


def _preview(text: str) -> str:
    return text[:EXTRACTED_TEXT_PREVIEW_CHARS] + "..."


class ToolServer:
    """
    Dispatches tool calls to the pipeline.

    Args:
        extractor: AdverseEventExtractor
        classifier: AdverseEventClassifier
        agent: optional PharmacovigilanceAgent; when set, created events are
            queued for automated processing
    """

    def __init__(self, extractor, classifier, agent=None, db_path: Path = DB_PATH):
        self.extractor = extractor
        self.classifier = classifier
        self.agent = agent
        self.db_path = db_path

        # tool name -> (handler, failure message prefix)
        self._tools: Dict[str, Tuple[Callable, str]] = {
            "get_adverse_events": (self._get_adverse_events, "Failed to retrieve adverse events"),
            "get_patient_info": (self._get_patient_info, "Failed to retrieve patient information"),
            "get_drug_info": (self._get_drug_info, "Failed to retrieve drug information"),
            "create_adverse_event": (self._create_adverse_event, "Failed to create adverse event"),
            "update_adverse_event_status": (self._update_status, "Failed to update adverse event status"),
            "get_statistics": (self._get_statistics, "Failed to retrieve statistics"),
            "classify_adverse_event": (self._classify_adverse_event, "Failed to classify adverse event"),
            "classify_event_from_input": (self._classify_from_input, "Failed to classify event from input"),
            "classify_from_pdf": (self._classify_from_pdf, "Failed to classify from PDF"),
            "classify_from_email": (self._classify_from_email, "Failed to classify from email"),
            "classify_from_telephony_transcript": (
                self._classify_from_transcript,
                "Failed to classify from telephony transcript",
            ),
            "classify_from_document": (self._classify_from_document, "Failed to classify from document"),
        }

    # ---- entry points ----

    def call(self, tool_name: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if tool_name not in self._tools:
            return _error(f"Unknown tool: {tool_name}")
        handler, failure_prefix = self._tools[tool_name]

        try:
            request = rq.TOOL_REQUEST_ADAPTER.validate_python({**(params or {}), "tool": tool_name})
        except ValidationError as e:
            logger.warning(f"Invalid parameters for {tool_name}: {e.error_count()} error(s)")
            return _error(_format_validation_error(e, tool_name))

        logger.info(f"Tool call: {tool_name}")
        try:
            with closing(get_connection(self.db_path)) as conn:
                return handler(request, conn)
        except Exception as e:
            logger.error(f"Error in tool {tool_name}: {e}", exc_info=True)
            return _error(f"{failure_prefix}: {e}")

    def list_tools(self) -> List[Dict[str, Any]]:
        """Tool catalogue: name, description and parameters of every tool."""
        catalogue = []
        for model in rq.REQUEST_MODELS:
            parameters = [
                {"name": field.alias or name, "required": field.is_required()}
                for name, field in model.model_fields.items()
                if name != "tool"
            ]
            catalogue.append({
                "name": model.model_fields["tool"].default,
                "description": (model.__doc__ or "").strip(),
                "parameters": parameters,
            })
        return catalogue

    # ---- store tools ----

    def _get_adverse_events(self, request: rq.GetAdverseEventsRequest, conn: sqlite3.Connection):
        events = find_events_by_criteria(
            conn,
            severity=request.severity,
            status=request.status,
            drug_name=request.drug_name,
            patient_id=request.patient_id,
        )
        return _success([e.to_dict() for e in events], count=len(events))

    def _get_patient_info(self, request: rq.GetPatientInfoRequest, conn: sqlite3.Connection):
        patient = find_patient_by_patient_id(conn, request.patient_id)
        if patient is None:
            return _error("Patient not found")
        return _success(patient.to_dict())

    def _get_drug_info(self, request: rq.GetDrugInfoRequest, conn: sqlite3.Connection):
        if request.drug_code is not None:
            drug = find_drug_by_code(conn, request.drug_code)
            drugs = [drug] if drug else []
        else:
            drugs = find_drugs_by_name(conn, request.drug_name)
        return _success([d.to_dict() for d in drugs], count=len(drugs))

    def _create_adverse_event(self, request: rq.CreateAdverseEventRequest, conn: sqlite3.Connection):
        patient = None
        if request.patient_id:
            patient = find_patient_by_patient_id(conn, request.patient_id)
            if patient is None:
                return _error(f"Patient not found: {request.patient_id}")

        event = AdverseEvent(
            case_number=request.case_number or f"AE-{epoch_millis()}",
            drug_name=request.drug_name,
            adverse_event_description=request.adverse_event_description,
            severity=request.severity,
            status=request.status,
            symptoms=request.symptoms,
            medical_history=request.medical_history,
            concomitant_medications=request.concomitant_medications,
            reporter_notes=request.reporter_notes,
            event_date=request.event_date,
            report_date=request.report_date,
            patient=patient,
            drug_id=request.drug_id,
        )
        save_event(conn, event)

        if self.agent is not None:
            self.agent.dispatch(event.id)
        return _success(event.to_dict(), message="Adverse event created successfully")

    def _update_status(self, request: rq.UpdateAdverseEventStatusRequest, conn: sqlite3.Connection):
        event = get_event_by_id(conn, request.event_id)
        if event is None:
            return _error("Adverse event not found")
        update_event_status(conn, event.id, request.status)
        event = get_event_by_id(conn, event.id)
        return _success(event.to_dict(), message="Adverse event status updated successfully")

    def _get_statistics(self, request: rq.GetStatisticsRequest, conn: sqlite3.Connection):
        return _success({
            "severityCounts": count_events_by_severity(conn),
            "statusCounts": count_events_by_status(conn),
            "totalAdverseEvents": count_rows(conn, "adverse_events"),
            "totalPatients": count_rows(conn, "patients"),
            "totalDrugs": count_rows(conn, "drugs"),
        })

    # ---- classification tools ----

    def _classify_adverse_event(self, request: rq.ClassifyAdverseEventRequest, conn: sqlite3.Connection):
        event = get_event_by_id(conn, request.event_id)
        if event is None:
            return _error("Adverse event not found")

        logger.info(f"Performing AI classification for event: {event.case_number}")
        result = self.classifier.classify(event, conn)
        data = {"eventId": event.id, "caseNumber": event.case_number, **result.to_dict()}
        return _success(data, message="AI classification completed successfully")

    def _classify_from_input(self, request: rq.ClassifyEventFromInputRequest, conn: sqlite3.Connection):
        case = self.classifier.case_from_input(request.model_dump(by_alias=True, exclude={"tool"}), conn)
        logger.info(f"Performing AI classification for input event: {case.case_number}")
        result = self.classifier.classify(case)
        data = {
            "inputData": {
                "drugName": request.drug_name,
                "adverseEventDescription": request.adverse_event_description,
                "severity": request.severity or "Not specified",
                "symptoms": request.symptoms or "Not provided",
            },
            **result.to_dict(),
        }
        return _success(data, message="AI classification from input completed successfully")

    def _classify_extracted(self, record: ExtractedRecord) -> Tuple[EnrichedRecord, Optional[Dict[str, Any]]]:
        """Validate an extracted record and classify it when valid."""
        enriched = self.extractor.validate_and_enrich(record)
        if not enriched.is_valid:
            return enriched, None
        try:
            result = self.classifier.classify_enriched(enriched)
        except Exception as e:
            logger.error(f"Error performing classification on extracted data: {e}")
            return enriched, {"error": f"Classification failed: {e}"}
        return enriched, result.to_dict()

    def _classify_from_pdf(self, request: rq.ClassifyFromPdfRequest, conn: sqlite3.Connection):
        logger.info(f"Processing PDF document: {request.file_name}")
        normalized = normalize(PdfSource(decode_base64(request.pdf_content)))
        enriched, classification = self._classify_extracted(self.extractor.extract(normalized))
        return _success(
            fileName=request.file_name,
            extractedText=_preview(normalized.text),
            extractedData=enriched.to_dict(),
            classification=classification,
            message="PDF processed and adverse event classified successfully",
        )

    def _classify_from_email(self, request: rq.ClassifyFromEmailRequest, conn: sqlite3.Connection):
        if request.eml_content is not None:
            logger.info("Processing email from .eml file")
            email_data = parse_email_bytes(decode_base64(request.eml_content))
            subject, body, sender = email_data["subject"], email_data["body"], email_data["from"]
        else:
            subject, body, sender = request.subject, request.body, request.sender

        logger.info(f"Processing email from: {sender}, subject: {subject}")
        normalized = normalize(EmailSource(subject=subject, body=body, sender=sender))
        enriched, classification = self._classify_extracted(self.extractor.extract(normalized))
        return _success(
            emailMetadata={"from": sender, "subject": subject},
            extractedData=enriched.to_dict(),
            classification=classification,
            message="Email processed and adverse event classified successfully",
        )

    def _classify_from_transcript(
        self, request: rq.ClassifyFromTelephonyTranscriptRequest, conn: sqlite3.Connection
    ):
        logger.info(f"Processing telephony transcript for call: {request.call_id}")
        normalized = normalize(TranscriptSource(transcript=request.transcript, caller_info=request.caller_info))
        enriched, classification = self._classify_extracted(self.extractor.extract(normalized))
        return _success(
            callMetadata={"callId": request.call_id or "N/A", "callerInfo": request.caller_info},
            extractedData=enriched.to_dict(),
            classification=classification,
            message="Telephony transcript processed and adverse event classified successfully",
        )

    def _classify_from_document(self, request: rq.ClassifyFromDocumentRequest, conn: sqlite3.Connection):
        logger.info(f"Processing document: {request.file_name} (type: {request.document_type})")
        normalized = normalize(DocumentSource(decode_base64(request.document_content), request.file_name))
        enriched, classification = self._classify_extracted(self.extractor.extract(normalized))
        return _success(
            fileName=request.file_name,
            extractedText=_preview(normalized.text),
            extractedData=enriched.to_dict(),
            classification=classification,
            message="Document processed and adverse event classified successfully",
        )
