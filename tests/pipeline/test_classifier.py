"""Tests for causality, risk and pattern analyses with a mocked model."""

import sqlite3
from unittest.mock import patch

import pytest

from pv_agent.core.db import get_analyses_for_event
from pv_agent.core.exceptions import ModelCallError, ValidationError
from pv_agent.core.models import AdverseEvent
from pv_agent.pipeline.classification.classifier import AdverseEventClassifier
from pv_agent.pipeline.classification.insights import (
    INSIGHTS_PLACEHOLDER,
    RECOMMENDATIONS_PLACEHOLDER,
    extract_insights,
    extract_recommendations,
)
from pv_agent.pipeline.extraction.schemas import ExtractedRecord
from pv_agent.pipeline.extraction.validation import validate_and_enrich

JSON_TAIL_RESPONSE = """Causality: Probable.
Key factors: this line should lose to the JSON block

```json
{"keyFactors": ["onset within 24h", "positive dechallenge"], "recommendations": "Report to regulator"}
```"""


class TestInsights:
    """Key factor and recommendation extraction."""

    def test_json_block_wins(self):
        assert extract_insights(JSON_TAIL_RESPONSE) == "onset within 24h; positive dechallenge"
        assert extract_recommendations(JSON_TAIL_RESPONSE) == "Report to regulator"

    def test_marker_line_fallback(self):
        response = "Intro\nKey factors: rapid onset\nRecommendations: stop the drug\nMore text"

        assert extract_insights(response) == "Key factors: rapid onset"
        assert extract_recommendations(response) == "Recommendations: stop the drug"

    def test_marker_at_end_of_text(self):
        assert extract_recommendations("Recommendations: stop the drug") == "Recommendations: stop the drug"

    def test_malformed_json_block_falls_back(self):
        response = "Key factors: dose\n```json\n{not json}\n```"

        assert extract_insights(response) == "Key factors: dose"

    def test_placeholders(self):
        assert extract_insights("Nothing useful") == INSIGHTS_PLACEHOLDER
        assert extract_recommendations("") == RECOMMENDATIONS_PLACEHOLDER


class TestAdverseEventClassifier:
    """Single case classification."""

    def test_persisted_case_stores_two_analyses(self, conn, db_path, llm, make_event):
        event = make_event(severity="SEVERE")
        classifier = AdverseEventClassifier(llm, db_path=db_path)

        result = classifier.classify(event, conn)

        assert llm.complete.call_count == 2
        stored = get_analyses_for_event(conn, event.id)
        assert sorted(a.analysis_type for a in stored) == ["CAUSALITY_ASSESSMENT", "RISK_ANALYSIS"]
        assert result.causality.id is not None
        assert result.causality.extracted_insights == "Key factors: temporal relationship"
        assert result.risk.recommendations == "Recommendations: monitor patient"
        assert result.causality.model_used == "test-model"

    def test_pair_is_stored_in_one_batch(self, conn, db_path, llm, make_event):
        event = make_event()
        classifier = AdverseEventClassifier(llm, db_path=db_path)

        with patch(
            "pv_agent.pipeline.classification.classifier.save_analyses",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ) as save:
            with pytest.raises(sqlite3.OperationalError):
                classifier.classify(event, conn)

        save.assert_called_once()
        stored_types = [a.analysis_type for a in save.call_args.args[1]]
        assert stored_types == ["CAUSALITY_ASSESSMENT", "RISK_ANALYSIS"]
        assert get_analyses_for_event(conn, event.id) == []

    def test_prompts_carry_case_details(self, conn, db_path, llm, make_event, patient):
        event = make_event(severity="MILD", drug_name="Metformin", patient=patient)

        AdverseEventClassifier(llm, db_path=db_path).classify(event, conn)

        causality_prompt = llm.complete.call_args_list[0].args[0]
        risk_prompt = llm.complete.call_args_list[1].args[0]
        assert "Metformin" in causality_prompt
        assert "Patient ID: P001" in causality_prompt
        assert "Medical History: Not specified" in causality_prompt
        assert "risk analysis" in risk_prompt

    def test_transient_case_is_not_stored(self, conn, db_path, llm):
        case = AdverseEvent(case_number="TEMP-1", drug_name="Aspirin", adverse_event_description="Bleeding")

        result = AdverseEventClassifier(llm, db_path=db_path).classify(case)

        assert result.causality.id is None
        assert result.causality.adverse_event_id is None
        assert conn.execute("SELECT COUNT(*) FROM ai_analyses").fetchone()[0] == 0

    def test_model_failure_gives_failed_analysis(self, db_path, llm, make_event):
        llm.complete.side_effect = ModelCallError("model unavailable")
        event = make_event()

        result = AdverseEventClassifier(llm, db_path=db_path).classify(event)

        assert result.causality.status == "FAILED"
        assert result.risk.status == "FAILED"
        assert result.causality.ai_response.startswith("Error: Unable to perform AI analysis - ")
        assert result.causality.extracted_insights == INSIGHTS_PLACEHOLDER

    def test_result_dict_shape(self, db_path, llm, make_event):
        result = AdverseEventClassifier(llm, db_path=db_path).classify(make_event())

        data = result.to_dict()
        assert set(data) == {"causalityAssessment", "riskAnalysis"}
        assert data["riskAnalysis"]["type"] == "RISK_ANALYSIS"
        assert data["causalityAssessment"]["status"] == "COMPLETED"


class TestPatternDetection:
    """Cross-case analysis threshold and storage."""

    def test_below_threshold_makes_no_call(self, db_path, llm, make_event):
        events = [make_event() for _ in range(4)]

        result = AdverseEventClassifier(llm, db_path=db_path, pattern_min_events=5).detect_patterns(events)

        assert result is None
        llm.complete.assert_not_called()

    def test_at_threshold_stores_unlinked_analysis(self, conn, db_path, llm, make_event):
        events = [make_event(drug_name=f"Drug{i}") for i in range(5)]

        result = AdverseEventClassifier(llm, db_path=db_path, pattern_min_events=5).detect_patterns(events)

        assert result.analysis_type == "PATTERN_DETECTION"
        assert result.id is not None
        assert result.adverse_event_id is None
        prompt = llm.complete.call_args.args[0]
        assert all(f"Drug{i}" in prompt for i in range(5))


class TestTransientCases:
    """Cases built from tool input or extracted records."""

    def test_case_from_input_defaults(self, llm):
        case = AdverseEventClassifier(llm).case_from_input(
            {"drugName": "Aspirin", "adverseEventDescription": "Bleeding", "severity": "life-threatening"}
        )

        assert case.case_number.startswith("TEMP-")
        assert case.severity == "LIFE_THREATENING"
        assert not case.is_persisted

    def test_case_from_input_keeps_case_number(self, llm):
        case = AdverseEventClassifier(llm).case_from_input(
            {"caseNumber": "CASE-9", "drugName": "Aspirin", "adverseEventDescription": "Bleeding"}
        )

        assert case.case_number == "CASE-9"

    def test_case_from_input_requires_drug_and_description(self, llm):
        with pytest.raises(ValidationError, match="adverseEventDescription"):
            AdverseEventClassifier(llm).case_from_input({"drugName": "Aspirin"})

    def test_invalid_severity_is_dropped(self, llm):
        case = AdverseEventClassifier(llm).case_from_input(
            {"drugName": "Aspirin", "adverseEventDescription": "Bleeding", "severity": "catastrophic"}
        )

        assert case.severity is None

    def test_case_from_input_attaches_known_patient(self, conn, llm, patient):
        case = AdverseEventClassifier(llm).case_from_input(
            {"drugName": "Aspirin", "adverseEventDescription": "Bleeding", "patientId": "P001"}, conn
        )

        assert case.patient_external_id == "P001"

    def test_invalid_record_is_not_classified(self, llm):
        enriched = validate_and_enrich(ExtractedRecord(drug_name="Aspirin"), "src")

        assert AdverseEventClassifier(llm).classify_enriched(enriched) is None
        llm.complete.assert_not_called()

    def test_valid_record_is_classified_transiently(self, llm):
        enriched = validate_and_enrich(
            ExtractedRecord(drug_name="Aspirin", adverse_event_description="Bleeding", severity="Severe"), "src"
        )

        result = AdverseEventClassifier(llm).classify_enriched(enriched)

        assert result.case_number.startswith("EXTRACTED-")
        assert result.event_id is None
        assert llm.complete.call_count == 2
