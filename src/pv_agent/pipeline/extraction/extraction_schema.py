"""
Target fields for adverse event extraction.

The model is asked for exactly these keys (camelCase, as they appear in the
JSON it returns). Each value is a short instruction embedded in the prompt.
"""

EXTRACTION_FIELDS = {
    "drugName": "Name of the drug/medication involved",
    "adverseEventDescription": "Description of the adverse event",
    "severity": "MILD, MODERATE, SEVERE, LIFE_THREATENING, or FATAL",
    "symptoms": "List of symptoms observed",
    "patientAge": "Patient age if mentioned",
    "patientGender": "MALE, FEMALE, or OTHER",
    "medicalHistory": "Relevant medical history",
    "concomitantMedications": "Other medications being taken",
    "dateOfOnset": "When the adverse event started",
    "outcome": "Current outcome or status",
    "reporterName": "Name of person reporting",
    "reporterType": "PHYSICIAN, NURSE, PHARMACIST, PATIENT, or OTHER",
    "additionalNotes": "Any other relevant information",
}

# A record is only classified when both of these are present
REQUIRED_FIELDS = ("drugName", "adverseEventDescription")

# Literal values the model uses for "no data"; compared case-insensitively
NO_DATA_SENTINELS = frozenset({"not mentioned", "not available", "n/a"})
