"""
Central configuration constants for the pharmacovigilance agent.

Supports environment variables for configuration:
- PV_AGENT_DB_PATH: Database file name (default: pharmacovigilance.db)
- PV_AGENT_LOG_LEVEL: Logging level (default: INFO)
- PV_AGENT_LOG_FILE: Log file path (default: logs/pv_agent.log)
- PV_AGENT_DATA_DIR: Data directory (default: data)
"""

import os
from pathlib import Path

# Environment variable configuration
DATA_DIR = Path(os.getenv("PV_AGENT_DATA_DIR", "data"))
DB_PATH = DATA_DIR / os.getenv("PV_AGENT_DB_PATH", "pharmacovigilance.db")
LOG_LEVEL = os.getenv("PV_AGENT_LOG_LEVEL", "INFO")
LOG_FILE = Path(os.getenv("PV_AGENT_LOG_FILE", "logs/pv_agent.log"))

# ---- Language model ----

# Ollama configuration (local daemon by default, Ollama Cloud when host is https://ollama.com)
OLLAMA_API_KEY = os.getenv("OLLAMA_API_KEY")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
OLLAMA_CLOUD_HOST = "https://ollama.com"

LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

# Extraction wants near-deterministic JSON, analyses get a little more room
EXTRACTION_TEMPERATURE = float(os.getenv("EXTRACTION_TEMPERATURE", "0.2"))
EXTRACTION_MAX_TOKENS = int(os.getenv("EXTRACTION_MAX_TOKENS", "1500"))
ANALYSIS_TEMPERATURE = float(os.getenv("ANALYSIS_TEMPERATURE", "0.3"))
ANALYSIS_MAX_TOKENS = int(os.getenv("ANALYSIS_MAX_TOKENS", "1000"))

# ---- Workflow / scheduling ----

PENDING_SWEEP_INTERVAL_MINUTES = int(os.getenv("PENDING_SWEEP_INTERVAL_MINUTES", "5"))
PENDING_STALENESS_MINUTES = int(os.getenv("PENDING_STALENESS_MINUTES", "5"))
PATTERN_ANALYSIS_TIME = os.getenv("PATTERN_ANALYSIS_TIME", "02:00")  # HH:MM, daily
PATTERN_MIN_EVENTS = int(os.getenv("PATTERN_MIN_EVENTS", "5"))

WORKFLOW_MAX_WORKERS = int(os.getenv("WORKFLOW_MAX_WORKERS", "5"))
WORKFLOW_QUEUE_CAPACITY = int(os.getenv("WORKFLOW_QUEUE_CAPACITY", "100"))
FOLLOW_UP_DUE_DAYS = int(os.getenv("FOLLOW_UP_DUE_DAYS", "7"))

# Length of the extracted-text preview returned by document tools
EXTRACTED_TEXT_PREVIEW_CHARS = 500
