from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from pv_agent.core.utils import camelize_keys

# Allowed values. Stored as plain upper-case strings in the database.
SEVERITY_LEVELS = ("MILD", "MODERATE", "SEVERE", "LIFE_THREATENING", "FATAL")
EVENT_STATUSES = ("NEW", "UNDER_INVESTIGATION", "CONFIRMED", "REJECTED", "CLOSED")
CAUSALITY_LEVELS = (
    "CERTAIN", "PROBABLE", "POSSIBLE", "UNLIKELY", "UNCLASSIFIABLE", "UNASSESSABLE",
)
ANALYSIS_TYPES = (
    "CAUSALITY_ASSESSMENT",
    "RISK_ANALYSIS",
    "PATTERN_DETECTION",
    "REGULATORY_COMPLIANCE",
    "CLINICAL_SIGNIFICANCE",
)
ANALYSIS_STATUSES = ("PENDING", "COMPLETED", "FAILED", "PARTIAL")
ACTION_TYPES = (
    "INVESTIGATION",
    "REGULATORY_SUBMISSION",
    "PATIENT_FOLLOW_UP",
    "DRUG_SAFETY_REVIEW",
    "CLINICAL_TRIAL_REVIEW",
    "LITERATURE_REVIEW",
)
ACTION_STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED", "CANCELLED", "OVERDUE")
GENDERS = ("MALE", "FEMALE", "OTHER", "UNKNOWN")
DRUG_STATUSES = ("ACTIVE", "DISCONTINUED", "SUSPENDED", "UNDER_REVIEW")

# Severities that escalate a case to investigation
ESCALATING_SEVERITIES = ("SEVERE", "LIFE_THREATENING")


@dataclass
class Patient:
    patient_id: str                    # external identifier, e.g. "P001"
    first_name: str
    last_name: str
    date_of_birth: Optional[str] = None   # YYYY-MM-DD
    gender: Optional[str] = None          # one of GENDERS
    weight: Optional[float] = None        # kg
    height: Optional[float] = None        # cm
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    current_medications: Optional[str] = None
    contact_info: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return camelize_keys(asdict(self))


@dataclass
class Drug:
    drug_code: str
    drug_name: str
    generic_name: Optional[str] = None
    manufacturer: Optional[str] = None
    active_ingredient: Optional[str] = None
    indications: Optional[str] = None
    contraindications: Optional[str] = None
    known_adverse_effects: Optional[str] = None
    dosage_form: Optional[str] = None
    strength: Optional[str] = None
    status: Optional[str] = "ACTIVE"      # one of DRUG_STATUSES
    approval_date: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return camelize_keys(asdict(self))


@dataclass
class AdverseEvent:
    """
    The case under analysis.

    A case with ``id is None`` is transient: it only exists to feed the
    classification prompts and is never written to the store.
    """

    case_number: str
    drug_name: str
    adverse_event_description: str
    severity: Optional[str] = None        # one of SEVERITY_LEVELS
    status: Optional[str] = "NEW"         # one of EVENT_STATUSES
    symptoms: Optional[str] = None
    medical_history: Optional[str] = None
    concomitant_medications: Optional[str] = None
    reporter_notes: Optional[str] = None
    causality: Optional[str] = None       # one of CAUSALITY_LEVELS
    event_date: Optional[str] = None
    report_date: Optional[str] = None
    patient: Optional[Patient] = None
    drug_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    @property
    def patient_external_id(self) -> Optional[str]:
        return self.patient.patient_id if self.patient else None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("patient")
        d["patient_id"] = self.patient_external_id
        return camelize_keys(d)


@dataclass
class AiAnalysis:
    analysis_type: str                    # one of ANALYSIS_TYPES
    analysis_prompt: str
    ai_response: str
    model_used: str
    status: str                           # one of ANALYSIS_STATUSES
    extracted_insights: Optional[str] = None
    recommendations: Optional[str] = None
    adverse_event_id: Optional[int] = None   # None for pattern detection and transient cases
    confidence_score: Optional[float] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        """Compact view returned by the classification tools."""
        return {
            "analysisId": self.id,
            "type": self.analysis_type,
            "status": self.status,
            "insights": self.extracted_insights,
            "recommendations": self.recommendations,
            "fullResponse": self.ai_response,
        }

    def to_dict(self) -> Dict[str, Any]:
        return camelize_keys(asdict(self))


@dataclass
class FollowUpAction:
    adverse_event_id: int
    action_type: str                      # one of ACTION_TYPES
    description: str
    assigned_to: str
    due_date: str
    status: str = "PENDING"               # one of ACTION_STATUSES
    completed_date: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return camelize_keys(asdict(self))


@dataclass
class ClassificationResult:
    """Causality + risk pair produced by one classification run."""

    case_number: str
    causality: AiAnalysis
    risk: AiAnalysis
    event_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "causalityAssessment": self.causality.summary(),
            "riskAnalysis": self.risk.summary(),
        }

