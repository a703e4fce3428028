# src/pv_agent/core/db.py
"""
SQLite-backed store for patients, drugs, adverse events, AI analyses and
follow-up actions.

Every write helper runs inside its own db_transaction(), so a single call either
fully commits or leaves the database untouched.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pv_agent.core.config import DB_PATH
from pv_agent.core.models import (
    AdverseEvent,
    AiAnalysis,
    Drug,
    FollowUpAction,
    Patient,
)
from pv_agent.core.utils import now_utc_iso

logger = logging.getLogger(__name__)


def get_connection(
    db_path: Path = DB_PATH,
    timeout: float = 30.0,
    read_only: bool = False,
) -> sqlite3.Connection:
    """
    Get a database connection configured for concurrent access.

    Workflow runs execute on pool threads and each opens its own connection,
    so connections are created with check_same_thread=False and WAL mode.

    Args:
        db_path: Path to database file
        timeout: Connection timeout in seconds
        read_only: If True, opens connection in read-only mode

    Returns:
        SQLite connection with WAL mode enabled and proper timeouts
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if read_only:
        db_uri = f"file:{db_path}?mode=ro"
        conn = sqlite3.connect(db_uri, uri=True, timeout=5.0, check_same_thread=False)
    else:
        conn = sqlite3.connect(str(db_path), timeout=timeout, check_same_thread=False)

    conn.row_factory = sqlite3.Row

    if not read_only:
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA busy_timeout=30000")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as e:
            # Some network filesystems refuse WAL
            logger.warning(f"Could not enable WAL mode: {e}. Continuing with default journal mode.")

    return conn


@contextmanager
def db_transaction(conn: sqlite3.Connection, commit: bool = True):
    """
    Context manager for database transactions.

    Usage:
        with db_transaction(conn):
            conn.execute("INSERT INTO ...")
            # Automatically commits on exit, rolls back on error
    """
    try:
        yield conn
        if commit:
            conn.commit()
    except Exception:
        conn.rollback()
        raise


def init_db(conn: sqlite3.Connection) -> None:
    """
    Create tables if they don't exist.

    Schema design:
    - patients / drugs: reference data looked up by external id / code
    - adverse_events: the cases, optionally linked to a patient and a drug
    - ai_analyses: causality / risk / pattern analyses (pattern rows have no event)
    - follow_up_actions: tasks derived by the workflow agent
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS patients (
            id                   INTEGER PRIMARY KEY AUTOINCREMENT,
            patient_id           TEXT NOT NULL UNIQUE,
            first_name           TEXT NOT NULL,
            last_name            TEXT NOT NULL,
            date_of_birth        TEXT,
            gender               TEXT,
            weight               REAL,
            height               REAL,
            medical_history      TEXT,
            allergies            TEXT,
            current_medications  TEXT,
            contact_info         TEXT,
            created_at           TEXT NOT NULL,
            updated_at           TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS drugs (
            id                     INTEGER PRIMARY KEY AUTOINCREMENT,
            drug_code              TEXT NOT NULL UNIQUE,
            drug_name              TEXT NOT NULL,
            generic_name           TEXT,
            manufacturer           TEXT,
            active_ingredient      TEXT,
            indications            TEXT,
            contraindications      TEXT,
            known_adverse_effects  TEXT,
            dosage_form            TEXT,
            strength               TEXT,
            status                 TEXT,
            approval_date          TEXT,
            created_at             TEXT NOT NULL,
            updated_at             TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS adverse_events (
            id                         INTEGER PRIMARY KEY AUTOINCREMENT,
            case_number                TEXT NOT NULL,
            drug_name                  TEXT NOT NULL,
            adverse_event_description  TEXT NOT NULL,
            severity                   TEXT,
            status                     TEXT,
            symptoms                   TEXT,
            medical_history            TEXT,
            concomitant_medications    TEXT,
            reporter_notes             TEXT,
            causality                  TEXT,
            event_date                 TEXT,
            report_date                TEXT,
            patient_ref                INTEGER,
            drug_id                    INTEGER,
            created_at                 TEXT NOT NULL,
            updated_at                 TEXT NOT NULL,
            FOREIGN KEY (patient_ref) REFERENCES patients(id) ON DELETE SET NULL,
            FOREIGN KEY (drug_id) REFERENCES drugs(id) ON DELETE SET NULL
        );

        CREATE TABLE IF NOT EXISTS ai_analyses (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            adverse_event_id    INTEGER,
            analysis_type       TEXT NOT NULL,
            analysis_prompt     TEXT,
            ai_response         TEXT,
            model_used          TEXT,
            confidence_score    REAL,
            status              TEXT NOT NULL,
            extracted_insights  TEXT,
            recommendations     TEXT,
            created_at          TEXT NOT NULL,
            FOREIGN KEY (adverse_event_id) REFERENCES adverse_events(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS follow_up_actions (
            id                INTEGER PRIMARY KEY AUTOINCREMENT,
            adverse_event_id  INTEGER NOT NULL,
            action_type       TEXT NOT NULL,
            description       TEXT,
            status            TEXT NOT NULL,
            assigned_to       TEXT,
            due_date          TEXT,
            completed_date    TEXT,
            notes             TEXT,
            created_at        TEXT NOT NULL,
            updated_at        TEXT NOT NULL,
            FOREIGN KEY (adverse_event_id) REFERENCES adverse_events(id) ON DELETE CASCADE
        );

        CREATE INDEX IF NOT EXISTS idx_events_status ON adverse_events(status);
        CREATE INDEX IF NOT EXISTS idx_events_severity ON adverse_events(severity);
        CREATE INDEX IF NOT EXISTS idx_analyses_event ON ai_analyses(adverse_event_id);
        CREATE INDEX IF NOT EXISTS idx_actions_event ON follow_up_actions(adverse_event_id);
        """
    )
    conn.commit()


# ---- Patients ----

_PATIENT_COLUMNS = (
    "patient_id", "first_name", "last_name", "date_of_birth", "gender", "weight",
    "height", "medical_history", "allergies", "current_medications", "contact_info",
)


def _row_to_patient(row) -> Patient:
    return Patient(
        id=row["id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        **{col: row[col] for col in _PATIENT_COLUMNS},
    )


def save_patient(conn: sqlite3.Connection, patient: Patient) -> Patient:
    now = now_utc_iso()
    values = [getattr(patient, col) for col in _PATIENT_COLUMNS]
    with db_transaction(conn):
        if patient.id is None:
            cur = conn.execute(
                f"INSERT INTO patients ({', '.join(_PATIENT_COLUMNS)}, created_at, updated_at) "
                f"VALUES ({', '.join('?' * len(_PATIENT_COLUMNS))}, ?, ?)",
                (*values, now, now),
            )
            patient.id = cur.lastrowid
            patient.created_at = now
        else:
            assignments = ", ".join(f"{col} = ?" for col in _PATIENT_COLUMNS)
            conn.execute(
                f"UPDATE patients SET {assignments}, updated_at = ? WHERE id = ?",
                (*values, now, patient.id),
            )
        patient.updated_at = now
    logger.info(f"Saved patient: {patient.patient_id}")
    return patient


def get_patient_by_ref(conn: sqlite3.Connection, ref: int) -> Optional[Patient]:
    row = conn.execute("SELECT * FROM patients WHERE id = ?", (ref,)).fetchone()
    return _row_to_patient(row) if row else None


def find_patient_by_patient_id(conn: sqlite3.Connection, patient_id: str) -> Optional[Patient]:
    """Look up a patient by external identifier (e.g. "P001")."""
    row = conn.execute("SELECT * FROM patients WHERE patient_id = ?", (patient_id,)).fetchone()
    return _row_to_patient(row) if row else None


# ---- Drugs ----

_DRUG_COLUMNS = (
    "drug_code", "drug_name", "generic_name", "manufacturer", "active_ingredient",
    "indications", "contraindications", "known_adverse_effects", "dosage_form",
    "strength", "status", "approval_date",
)


def _row_to_drug(row) -> Drug:
    return Drug(
        id=row["id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        **{col: row[col] for col in _DRUG_COLUMNS},
    )


def save_drug(conn: sqlite3.Connection, drug: Drug) -> Drug:
    now = now_utc_iso()
    values = [getattr(drug, col) for col in _DRUG_COLUMNS]
    with db_transaction(conn):
        if drug.id is None:
            cur = conn.execute(
                f"INSERT INTO drugs ({', '.join(_DRUG_COLUMNS)}, created_at, updated_at) "
                f"VALUES ({', '.join('?' * len(_DRUG_COLUMNS))}, ?, ?)",
                (*values, now, now),
            )
            drug.id = cur.lastrowid
            drug.created_at = now
        else:
            assignments = ", ".join(f"{col} = ?" for col in _DRUG_COLUMNS)
            conn.execute(
                f"UPDATE drugs SET {assignments}, updated_at = ? WHERE id = ?",
                (*values, now, drug.id),
            )
        drug.updated_at = now
    logger.info(f"Saved drug: {drug.drug_name}")
    return drug


def find_drug_by_code(conn: sqlite3.Connection, drug_code: str) -> Optional[Drug]:
    row = conn.execute("SELECT * FROM drugs WHERE drug_code = ?", (drug_code,)).fetchone()
    return _row_to_drug(row) if row else None


def find_drugs_by_name(conn: sqlite3.Connection, name: str) -> List[Drug]:
    """Case-insensitive substring match on drug name."""
    rows = conn.execute(
        "SELECT * FROM drugs WHERE LOWER(drug_name) LIKE ? ORDER BY drug_name",
        (f"%{name.lower()}%",),
    ).fetchall()
    return [_row_to_drug(row) for row in rows]


# ---- Adverse events ----

_EVENT_COLUMNS = (
    "case_number", "drug_name", "adverse_event_description", "severity", "status",
    "symptoms", "medical_history", "concomitant_medications", "reporter_notes",
    "causality", "event_date", "report_date", "drug_id",
)


def _row_to_event(conn: sqlite3.Connection, row) -> AdverseEvent:
    patient = get_patient_by_ref(conn, row["patient_ref"]) if row["patient_ref"] else None
    return AdverseEvent(
        id=row["id"],
        patient=patient,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        **{col: row[col] for col in _EVENT_COLUMNS},
    )


def save_event(conn: sqlite3.Connection, event: AdverseEvent) -> AdverseEvent:
    """Insert a new case or update an existing one (matched on id)."""
    now = now_utc_iso()
    patient_ref = event.patient.id if event.patient else None
    values = [getattr(event, col) for col in _EVENT_COLUMNS]
    with db_transaction(conn):
        if event.id is None:
            cur = conn.execute(
                f"INSERT INTO adverse_events ({', '.join(_EVENT_COLUMNS)}, patient_ref, created_at, updated_at) "
                f"VALUES ({', '.join('?' * len(_EVENT_COLUMNS))}, ?, ?, ?)",
                (*values, patient_ref, event.created_at or now, now),
            )
            event.id = cur.lastrowid
            event.created_at = event.created_at or now
        else:
            assignments = ", ".join(f"{col} = ?" for col in _EVENT_COLUMNS)
            conn.execute(
                f"UPDATE adverse_events SET {assignments}, patient_ref = ?, updated_at = ? WHERE id = ?",
                (*values, patient_ref, now, event.id),
            )
        event.updated_at = now
    logger.info(f"Saved adverse event: {event.case_number}")
    return event


def update_event_status(conn: sqlite3.Connection, event_id: int, status: str) -> None:
    with db_transaction(conn):
        conn.execute(
            "UPDATE adverse_events SET status = ?, updated_at = ? WHERE id = ?",
            (status, now_utc_iso(), event_id),
        )


def get_event_by_id(conn: sqlite3.Connection, event_id: int) -> Optional[AdverseEvent]:
    row = conn.execute("SELECT * FROM adverse_events WHERE id = ?", (event_id,)).fetchone()
    return _row_to_event(conn, row) if row else None


def find_events_by_status(conn: sqlite3.Connection, status: str) -> List[AdverseEvent]:
    rows = conn.execute(
        "SELECT * FROM adverse_events WHERE status = ? ORDER BY created_at", (status,)
    ).fetchall()
    return [_row_to_event(conn, row) for row in rows]


def find_all_events(conn: sqlite3.Connection) -> List[AdverseEvent]:
    rows = conn.execute("SELECT * FROM adverse_events ORDER BY created_at").fetchall()
    return [_row_to_event(conn, row) for row in rows]


def find_events_by_criteria(
    conn: sqlite3.Connection,
    severity: Optional[str] = None,
    status: Optional[str] = None,
    drug_name: Optional[str] = None,
    patient_id: Optional[str] = None,
) -> List[AdverseEvent]:
    """
    Filter cases. All given criteria are combined with AND; drug name is a
    case-insensitive substring match, patient_id is the external patient id.
    """
    clauses: List[str] = []
    params: List[object] = []
    if severity:
        clauses.append("e.severity = ?")
        params.append(severity)
    if status:
        clauses.append("e.status = ?")
        params.append(status)
    if drug_name:
        clauses.append("LOWER(e.drug_name) LIKE ?")
        params.append(f"%{drug_name.lower()}%")
    if patient_id:
        clauses.append("p.patient_id = ?")
        params.append(patient_id)

    query = "SELECT e.* FROM adverse_events e LEFT JOIN patients p ON p.id = e.patient_ref"
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY e.created_at"

    rows = conn.execute(query, params).fetchall()
    return [_row_to_event(conn, row) for row in rows]


def _count_grouped(conn: sqlite3.Connection, column: str) -> Dict[str, int]:
    rows = conn.execute(
        f"SELECT {column} AS value, COUNT(*) AS n FROM adverse_events GROUP BY {column}"
    ).fetchall()
    return {(row["value"] or "UNSPECIFIED"): row["n"] for row in rows}


def count_events_by_severity(conn: sqlite3.Connection) -> Dict[str, int]:
    return _count_grouped(conn, "severity")


def count_events_by_status(conn: sqlite3.Connection) -> Dict[str, int]:
    return _count_grouped(conn, "status")


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    if table not in ("patients", "drugs", "adverse_events", "ai_analyses", "follow_up_actions"):
        raise ValueError(f"Unknown table: {table}")
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


# ---- AI analyses ----

_ANALYSIS_COLUMNS = (
    "adverse_event_id", "analysis_type", "analysis_prompt", "ai_response", "model_used",
    "confidence_score", "status", "extracted_insights", "recommendations",
)


def save_analysis(conn: sqlite3.Connection, analysis: AiAnalysis) -> AiAnalysis:
    """Store an analysis. Analyses are immutable once written."""
    return save_analyses(conn, [analysis])[0]


def save_analyses(conn: sqlite3.Connection, analyses: Sequence[AiAnalysis]) -> List[AiAnalysis]:
    """Store a batch of analyses in one transaction; either all are written or none."""
    for analysis in analyses:
        if analysis.id is not None:
            raise ValueError(f"Analysis {analysis.id} is already stored")
    now = now_utc_iso()
    row_ids = []
    with db_transaction(conn):
        for analysis in analyses:
            cur = conn.execute(
                f"INSERT INTO ai_analyses ({', '.join(_ANALYSIS_COLUMNS)}, created_at) "
                f"VALUES ({', '.join('?' * len(_ANALYSIS_COLUMNS))}, ?)",
                (*[getattr(analysis, col) for col in _ANALYSIS_COLUMNS], now),
            )
            row_ids.append(cur.lastrowid)
    for analysis, row_id in zip(analyses, row_ids):
        analysis.id = row_id
        analysis.created_at = now
    return list(analyses)


def get_analyses_for_event(conn: sqlite3.Connection, event_id: int) -> List[AiAnalysis]:
    rows = conn.execute(
        "SELECT * FROM ai_analyses WHERE adverse_event_id = ? ORDER BY id", (event_id,)
    ).fetchall()
    return [
        AiAnalysis(id=row["id"], created_at=row["created_at"], **{col: row[col] for col in _ANALYSIS_COLUMNS})
        for row in rows
    ]


# ---- Follow-up actions ----

_ACTION_COLUMNS = (
    "adverse_event_id", "action_type", "description", "status", "assigned_to",
    "due_date", "completed_date", "notes",
)


def save_follow_up_actions(
    conn: sqlite3.Connection, actions: Sequence[FollowUpAction]
) -> List[FollowUpAction]:
    """Store a batch of actions in one transaction."""
    now = now_utc_iso()
    with db_transaction(conn):
        for action in actions:
            cur = conn.execute(
                f"INSERT INTO follow_up_actions ({', '.join(_ACTION_COLUMNS)}, created_at, updated_at) "
                f"VALUES ({', '.join('?' * len(_ACTION_COLUMNS))}, ?, ?)",
                (*[getattr(action, col) for col in _ACTION_COLUMNS], now, now),
            )
            action.id = cur.lastrowid
            action.created_at = now
            action.updated_at = now
    return list(actions)


def get_follow_up_actions_for_event(conn: sqlite3.Connection, event_id: int) -> List[FollowUpAction]:
    rows = conn.execute(
        "SELECT * FROM follow_up_actions WHERE adverse_event_id = ? ORDER BY id", (event_id,)
    ).fetchall()
    return [
        FollowUpAction(
            id=row["id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **{col: row[col] for col in _ACTION_COLUMNS},
        )
        for row in rows
    ]
