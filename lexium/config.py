from __future__ import annotations

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

STORAGE_DIR = Path(os.getenv("STORAGE_DIR", "storage"))

# Tabular file with one row per student. When the configured name is missing
# the first *.csv file in STORAGE_DIR is used.
DATA_FILE_NAME = os.getenv("DATA_FILE_NAME", "estudiantes.csv").strip()

# Auxiliary free-text documents, comma separated file names.
AUX_DOCUMENTS = tuple(
    name.strip()
    for name in os.getenv("AUX_DOCUMENTS", "reglamento.txt,calendario.txt,contexto.txt").split(",")
    if name.strip()
)

TEXT_ENCODINGS = ("utf-8", "cp1252", "latin-1")

# ---------------------------------------------------------------------------
# Engine limits
# ---------------------------------------------------------------------------

SAMPLE_DEFAULT_ROWS = 3
TOP_DEFAULT_K = 5
MAX_ROWS_REQUESTED = 50
THRESHOLD_MAX_ROWS = 200
TYPE_SAMPLE_SIZE = 25
NUMERIC_RATIO = 0.6

DOCUMENT_MAX_CHARS = int(os.getenv("DOCUMENT_MAX_CHARS", "20000"))
CONTEXT_MAX_CHARS = int(os.getenv("CONTEXT_MAX_CHARS", "80000"))
CONTEXT_SAMPLE_ROWS = int(os.getenv("CONTEXT_SAMPLE_ROWS", "60"))

# ---------------------------------------------------------------------------
# Text generation (OpenAI / Azure OpenAI)
# ---------------------------------------------------------------------------

AI_PROVIDER = os.getenv("AI_PROVIDER", "openai").strip().lower()
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip()
AZURE_OPENAI_ENDPOINT = os.getenv("AZURE_OPENAI_ENDPOINT", "").strip()
AZURE_OPENAI_API_KEY = os.getenv("AZURE_OPENAI_API_KEY", "").strip()
AZURE_OPENAI_DEPLOYMENT = os.getenv("AZURE_OPENAI_DEPLOYMENT", "").strip()
LLM_TIMEOUT_SECONDS = int(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
APP_VERSION = "0.1.0"
