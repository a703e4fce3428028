"""
Prompt builders for causality assessment, risk analysis and pattern detection.

Each prompt ends with HIGHLIGHTS_INSTRUCTION so the model closes its answer
with a small JSON block the classifier can read key factors and
recommendations from.
"""

from typing import Iterable, Optional

from pv_agent.core.models import AdverseEvent

HIGHLIGHTS_INSTRUCTION = """
Finish your response with a fenced JSON block summarizing it in one line each:
```json
{"keyFactors": "<the key factors behind your conclusion>", "recommendations": "<your main recommendations>"}
```
"""


def _value(value: Optional[str]) -> str:
    return value if value else "Not specified"


def build_causality_prompt(case: AdverseEvent) -> str:
    return f"""As a pharmacovigilance expert, please assess the causality between the drug and adverse event.

Case Details:
- Case Number: {case.case_number}
- Drug: {case.drug_name}
- Patient ID: {case.patient_external_id or "N/A"}
- Adverse Event: {case.adverse_event_description}
- Severity: {_value(case.severity)}
- Symptoms: {_value(case.symptoms)}
- Medical History: {_value(case.medical_history)}
- Concomitant Medications: {_value(case.concomitant_medications)}

Please provide:
1. Causality assessment (Certain, Probable, Possible, Unlikely, Unclassifiable, Unassessable)
2. Reasoning for your assessment
3. Key factors that influenced your decision
4. Recommendations for further investigation if needed

Format your response as a structured analysis.
{HIGHLIGHTS_INSTRUCTION}"""


def build_risk_prompt(case: AdverseEvent) -> str:
    return f"""As a pharmacovigilance expert, please perform a risk analysis for this adverse event.

Case Details:
- Case Number: {case.case_number}
- Drug: {case.drug_name}
- Patient ID: {case.patient_external_id or "N/A"}
- Adverse Event: {case.adverse_event_description}
- Severity: {_value(case.severity)}
- Symptoms: {_value(case.symptoms)}

Please analyze:
1. Risk level (Low, Medium, High, Critical)
2. Potential impact on patient safety
3. Regulatory implications
4. Risk mitigation strategies
5. Monitoring recommendations

Format your response as a structured risk assessment.
{HIGHLIGHTS_INSTRUCTION}"""


def build_pattern_prompt(events: Iterable[AdverseEvent]) -> str:
    case_lines = "\n".join(
        f"- Case: {e.case_number}, Drug: {e.drug_name}, Event: {e.adverse_event_description}, "
        f"Severity: {_value(e.severity)}, Status: {_value(e.status)}"
        for e in events
    )
    return f"""As a pharmacovigilance expert, please analyze the following adverse events for patterns and trends.

Adverse Events Data:
{case_lines}

Please identify:
1. Common patterns across events
2. Drug-specific trends
3. Severity patterns
4. Potential safety signals
5. Recommendations for further investigation

Format your response as a structured pattern analysis.
{HIGHLIGHTS_INSTRUCTION}"""
