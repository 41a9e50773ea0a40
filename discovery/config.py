"""
Runtime configuration.

Values come from the environment (a local .env file is loaded first), with
defaults suitable for local development:

    DACON_API_BASE / DACON_DEV_API_BASE   catalog endpoints
    OPENAI_API_KEY / EXPANSION_MODEL      query-expansion oracle
    DATA_DIR / PREFERENCES_FILE           bundled data + persisted preferences
    CATALOG_REFRESH_SECONDS               periodic catalog refresh
    DEBOUNCE_SECONDS                      quiet period before a query commits
    LOG_DIR / LOG_LEVEL                   application log output
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent.parent

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

DATA_DIR         = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
PREFERENCES_FILE = Path(os.getenv("PREFERENCES_FILE", str(DATA_DIR / "preferences.json")))
LOG_DIR          = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
LOG_LEVEL        = os.getenv("LOG_LEVEL", "INFO").upper()

# ---------------------------------------------------------------------------
# Catalog source
# ---------------------------------------------------------------------------

DACON_API_BASE     = os.getenv("DACON_API_BASE", "https://app.dacon.io")
DACON_DEV_API_BASE = os.getenv("DACON_DEV_API_BASE", "https://dev-app.dacon.io")
REQUEST_TIMEOUT    = float(os.getenv("REQUEST_TIMEOUT", "15"))
REQUEST_RETRIES    = int(os.getenv("REQUEST_RETRIES", "3"))

CATALOG_REFRESH_SECONDS = float(os.getenv("CATALOG_REFRESH_SECONDS", "3600"))

# ---------------------------------------------------------------------------
# Query pipeline
# ---------------------------------------------------------------------------

DEBOUNCE_SECONDS      = float(os.getenv("DEBOUNCE_SECONDS", "0.3"))
EXPANSION_MIN_LENGTH  = 2
MAX_RECENT_SEARCHES   = 5
POPULAR_CONTEST_TOP_N = 10
POPULAR_LEARNING_TOP_N = 15

# ---------------------------------------------------------------------------
# Expansion oracle (OpenAI)
# ---------------------------------------------------------------------------

OPENAI_API_KEY    = os.getenv("OPENAI_API_KEY", "")
EXPANSION_MODEL   = os.getenv("EXPANSION_MODEL", "gpt-4o-mini")
EXPANSION_TIMEOUT = float(os.getenv("EXPANSION_TIMEOUT", "10"))

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Sessions idle for longer than this are closed and forgotten
SESSION_TTL_SECONDS = float(os.getenv("SESSION_TTL_SECONDS", "1800"))
