"""
Sample reference data for local runs and demos.
"""

import datetime
import logging
import sqlite3

from pv_agent.core.db import count_rows, find_patient_by_patient_id, save_drug, save_event, save_patient
from pv_agent.core.models import AdverseEvent, Drug, Patient
from pv_agent.core.utils import now_utc, to_iso

logger = logging.getLogger(__name__)


def _sample_patients():
    return [
        Patient(
            patient_id="P001",
            first_name="John",
            last_name="Doe",
            date_of_birth="1980-05-15",
            gender="MALE",
            weight=75.5,
            height=175.0,
            medical_history="Hypertension, Diabetes Type 2",
            allergies="Penicillin",
            current_medications="Metformin, Lisinopril",
            contact_info="john.doe@email.com",
        ),
        Patient(
            patient_id="P002",
            first_name="Jane",
            last_name="Smith",
            date_of_birth="1975-08-22",
            gender="FEMALE",
            weight=65.0,
            height=165.0,
            medical_history="Asthma, Migraine",
            allergies="None known",
            current_medications="Albuterol, Sumatriptan",
            contact_info="jane.smith@email.com",
        ),
    ]


def _sample_drugs(now: datetime.datetime):
    return [
        Drug(
            drug_code="ASP001",
            drug_name="Aspirin",
            generic_name="Acetylsalicylic Acid",
            manufacturer="Bayer",
            active_ingredient="Acetylsalicylic Acid",
            indications="Pain relief, Anti-inflammatory, Anti-platelet",
            contraindications="Active bleeding, Peptic ulcer, Severe liver disease",
            known_adverse_effects="Gastrointestinal bleeding, Nausea, Vomiting, Headache",
            dosage_form="Tablet",
            strength="325mg",
            approval_date=to_iso(now - datetime.timedelta(days=3650)),
        ),
        Drug(
            drug_code="MET001",
            drug_name="Metformin",
            generic_name="Metformin Hydrochloride",
            manufacturer="Generic Pharma",
            active_ingredient="Metformin Hydrochloride",
            indications="Type 2 Diabetes Mellitus",
            contraindications="Severe renal impairment, Metabolic acidosis",
            known_adverse_effects="Nausea, Diarrhea, Abdominal pain, Metallic taste",
            dosage_form="Tablet",
            strength="500mg",
            approval_date=to_iso(now - datetime.timedelta(days=1825)),
        ),
        Drug(
            drug_code="LIS001",
            drug_name="Lisinopril",
            generic_name="Lisinopril",
            manufacturer="Generic Pharma",
            active_ingredient="Lisinopril Dihydrate",
            indications="Hypertension, Heart failure",
            contraindications="History of angioedema, Pregnancy",
            known_adverse_effects="Dry cough, Dizziness, Hyperkalemia, Angioedema",
            dosage_form="Tablet",
            strength="10mg",
            approval_date=to_iso(now - datetime.timedelta(days=5475)),
        ),
    ]


def seed_sample_data(conn: sqlite3.Connection) -> bool:
    """
    Insert sample patients, drugs and adverse events.

    Skips (and returns False) when the store already holds patients.
    """
    if count_rows(conn, "patients") > 0:
        logger.info("Sample data already present; skipping seed")
        return False

    logger.info("Initializing sample data...")
    now = now_utc()

    for patient in _sample_patients():
        save_patient(conn, patient)
    drugs = {drug.drug_code: save_drug(conn, drug) for drug in _sample_drugs(now)}

    john = find_patient_by_patient_id(conn, "P001")
    jane = find_patient_by_patient_id(conn, "P002")
    events = [
        AdverseEvent(
            case_number="AE-2024-001",
            patient=john,
            drug_name="Aspirin",
            drug_id=drugs["ASP001"].id,
            adverse_event_description="Severe headache and nausea after taking aspirin",
            severity="MODERATE",
            symptoms="Severe headache, nausea, dizziness",
            medical_history="Hypertension, Diabetes Type 2",
            concomitant_medications="Metformin, Lisinopril",
            reporter_notes="Patient reported symptoms 2 hours after taking aspirin",
            event_date=to_iso(now - datetime.timedelta(days=1)),
            report_date=to_iso(now),
        ),
        AdverseEvent(
            case_number="AE-2024-002",
            patient=jane,
            drug_name="Metformin",
            drug_id=drugs["MET001"].id,
            adverse_event_description="Gastrointestinal upset and metallic taste",
            severity="MILD",
            symptoms="Nausea, diarrhea, metallic taste in mouth",
            medical_history="Asthma, Migraine",
            concomitant_medications="Albuterol, Sumatriptan",
            reporter_notes="Patient started experiencing symptoms after 3 days of treatment",
            event_date=to_iso(now - datetime.timedelta(days=3)),
            report_date=to_iso(now),
        ),
        AdverseEvent(
            case_number="AE-2024-003",
            patient=john,
            drug_name="Lisinopril",
            drug_id=drugs["LIS001"].id,
            adverse_event_description="Swelling of lips and tongue with difficulty breathing",
            severity="SEVERE",
            symptoms="Facial swelling, throat tightness, shortness of breath",
            medical_history="Hypertension, Diabetes Type 2",
            concomitant_medications="Metformin, Aspirin",
            reporter_notes="Treated in emergency department; Lisinopril discontinued",
            event_date=to_iso(now - datetime.timedelta(days=2)),
            report_date=to_iso(now),
        ),
    ]
    for event in events:
        save_event(conn, event)

    logger.info(f"Seeded {len(drugs)} drugs and {len(events)} adverse events for 2 patients")
    return True
