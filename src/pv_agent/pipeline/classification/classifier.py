"""
AI-assisted classification of adverse events.

Runs causality assessment and risk analysis for one case (two model calls with
the same model), and cross-case pattern detection over many. Analyses of
persisted cases and pattern analyses are stored; transient cases only get the
analyses back.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from pv_agent.core.config import ANALYSIS_MAX_TOKENS, ANALYSIS_TEMPERATURE, DB_PATH, PATTERN_MIN_EVENTS
from pv_agent.core.db import find_patient_by_patient_id, get_connection, save_analyses
from pv_agent.core.exceptions import ModelCallError, ValidationError
from pv_agent.core.metrics import get_metrics
from pv_agent.core.models import SEVERITY_LEVELS, AdverseEvent, AiAnalysis, ClassificationResult
from pv_agent.core.utils import epoch_millis
from pv_agent.pipeline.classification.insights import extract_insights, extract_recommendations
from pv_agent.pipeline.classification.prompts import (
    build_causality_prompt,
    build_pattern_prompt,
    build_risk_prompt,
)
from pv_agent.pipeline.extraction.schemas import EnrichedRecord

logger = logging.getLogger(__name__)


def _normalize_severity(raw: Optional[str], case_number: str) -> Optional[str]:
    if not raw:
        return None
    severity = raw.strip().upper().replace("-", "_").replace(" ", "_")
    if severity not in SEVERITY_LEVELS:
        logger.warning(f"Ignoring invalid severity '{raw}' for case {case_number}")
        return None
    return severity


class AdverseEventClassifier:
    """
    Classifies adverse events with the language model.

    Args:
        llm_client: OllamaLLMClient (or any object with complete() and model_name)
        db_path: database used when the caller does not pass a connection
        pattern_min_events: pattern detection is skipped below this many cases
    """

    def __init__(
        self,
        llm_client,
        db_path: Path = DB_PATH,
        temperature: float = ANALYSIS_TEMPERATURE,
        max_tokens: int = ANALYSIS_MAX_TOKENS,
        pattern_min_events: int = PATTERN_MIN_EVENTS,
    ):
        self.llm_client = llm_client
        self.db_path = db_path
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.pattern_min_events = pattern_min_events

    # ---- model call ----

    def _run_analysis(self, analysis_type: str, prompt: str, event_id: Optional[int]) -> AiAnalysis:
        """One model call turned into an AiAnalysis. A failed call yields a FAILED analysis."""
        model = self.llm_client.model_name
        try:
            response = self.llm_client.complete(
                prompt, max_tokens=self.max_tokens, temperature=self.temperature
            )
            status = "COMPLETED"
        except ModelCallError as e:
            logger.error(f"{analysis_type} model call failed: {e}")
            response = f"Error: Unable to perform AI analysis - {e}"
            status = "FAILED"

        get_metrics().increment("analyses", labels={"type": analysis_type, "status": status})
        return AiAnalysis(
            analysis_type=analysis_type,
            analysis_prompt=prompt,
            ai_response=response,
            model_used=model,
            status=status,
            extracted_insights=extract_insights(response),
            recommendations=extract_recommendations(response),
            adverse_event_id=event_id,
        )

    def _store(self, analyses: Sequence[AiAnalysis], conn: Optional[sqlite3.Connection]) -> None:
        if conn is not None:
            save_analyses(conn, analyses)
            return
        own_conn = get_connection(self.db_path)
        try:
            save_analyses(own_conn, analyses)
        finally:
            own_conn.close()

    # ---- single case ----

    def perform_causality_assessment(self, case: AdverseEvent) -> AiAnalysis:
        logger.info(f"Performing causality assessment for adverse event: {case.case_number}")
        return self._run_analysis("CAUSALITY_ASSESSMENT", build_causality_prompt(case), case.id)

    def perform_risk_analysis(self, case: AdverseEvent) -> AiAnalysis:
        logger.info(f"Performing risk analysis for adverse event: {case.case_number}")
        return self._run_analysis("RISK_ANALYSIS", build_risk_prompt(case), case.id)

    def classify(self, case: AdverseEvent, conn: Optional[sqlite3.Connection] = None) -> ClassificationResult:
        """
        Causality + risk for one case. Model failures are absorbed into FAILED
        analyses, so this only raises on storage errors.
        """
        causality = self.perform_causality_assessment(case)
        risk = self.perform_risk_analysis(case)
        if case.is_persisted:
            self._store((causality, risk), conn)
        return ClassificationResult(
            case_number=case.case_number, causality=causality, risk=risk, event_id=case.id
        )

    # ---- across cases ----

    def detect_patterns(
        self, events: Sequence[AdverseEvent], conn: Optional[sqlite3.Connection] = None
    ) -> Optional[AiAnalysis]:
        """Run pattern detection over all given cases; None (and no model call) below the threshold."""
        if len(events) < self.pattern_min_events:
            logger.info(
                f"Skipping pattern detection: {len(events)} events (minimum {self.pattern_min_events})"
            )
            return None
        logger.info(f"Performing pattern detection for {len(events)} adverse events")
        analysis = self._run_analysis("PATTERN_DETECTION", build_pattern_prompt(events), None)
        self._store((analysis,), conn)
        return analysis

    # ---- transient cases ----

    def case_from_input(
        self, fields: Dict[str, Any], conn: Optional[sqlite3.Connection] = None
    ) -> AdverseEvent:
        """
        Build a transient case from raw tool input (camelCase keys). A known
        patientId is attached so the prompts can mention it.

        Raises:
            ValidationError: drugName or adverseEventDescription is missing
        """
        missing = [key for key in ("drugName", "adverseEventDescription") if not fields.get(key)]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        case_number = fields.get("caseNumber") or f"TEMP-{epoch_millis()}"
        case = AdverseEvent(
            case_number=case_number,
            drug_name=fields.get("drugName"),
            adverse_event_description=fields.get("adverseEventDescription"),
            severity=_normalize_severity(fields.get("severity"), case_number),
            symptoms=fields.get("symptoms"),
            medical_history=fields.get("medicalHistory"),
            concomitant_medications=fields.get("concomitantMedications"),
        )
        patient_id = fields.get("patientId")
        if patient_id and conn is not None:
            case.patient = find_patient_by_patient_id(conn, patient_id)
            if case.patient is None:
                logger.info(f"Patient {patient_id} not found; classifying without patient context")
        return case

    def case_from_enriched(self, record: EnrichedRecord) -> AdverseEvent:
        case_number = f"EXTRACTED-{epoch_millis()}"
        return AdverseEvent(
            case_number=case_number,
            drug_name=record.drug_name,
            adverse_event_description=record.adverse_event_description,
            severity=_normalize_severity(record.severity, case_number),
            symptoms=record.symptoms,
            medical_history=record.medical_history,
            concomitant_medications=record.concomitant_medications,
            reporter_notes=record.additional_notes,
        )

    def classify_enriched(self, record: EnrichedRecord) -> Optional[ClassificationResult]:
        """Classify an extracted record; invalid records are not classified."""
        if not record.is_valid:
            logger.info(f"Skipping classification of invalid record: {record.validation_error}")
            return None
        return self.classify(self.case_from_enriched(record))

