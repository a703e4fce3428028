"""Shared fixtures: temporary SQLite store and a mocked language model."""

from unittest.mock import Mock

import pytest

from pv_agent.core.db import get_connection, init_db, save_event, save_patient
from pv_agent.core.metrics import get_metrics
from pv_agent.core.models import AdverseEvent, Patient


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "pv_test.db"
    conn = get_connection(path)
    init_db(conn)
    conn.close()
    return path


@pytest.fixture
def conn(db_path):
    connection = get_connection(db_path)
    yield connection
    connection.close()


@pytest.fixture
def llm():
    """Language model stand-in; set .complete.return_value / .side_effect per test."""
    client = Mock()
    client.model_name = "test-model"
    client.complete.return_value = "Causality: Possible\nKey factors: temporal relationship\nRecommendations: monitor patient"
    return client


@pytest.fixture
def patient(conn):
    return save_patient(conn, Patient(patient_id="P001", first_name="John", last_name="Doe", gender="MALE"))


@pytest.fixture
def make_event(conn):
    """Factory for persisted adverse events."""
    counter = {"n": 0}

    def _make(severity="MODERATE", status="NEW", drug_name="Aspirin", created_at=None, patient=None):
        counter["n"] += 1
        event = AdverseEvent(
            case_number=f"AE-TEST-{counter['n']:03d}",
            drug_name=drug_name,
            adverse_event_description="Severe headache and nausea",
            severity=severity,
            status=status,
            symptoms="Headache, nausea",
            patient=patient,
            created_at=created_at,
        )
        return save_event(conn, event)

    return _make


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics().reset()
    yield
