"""Application settings."""
import os
from pathlib import Path

# Database file lives at repo root unless DATABASE_URL points elsewhere
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{REPO_ROOT / 'biomech.db'}")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Single implicit subject until real identities exist; still stored on every row
DEFAULT_SUBJECT_ID = os.getenv("DEFAULT_SUBJECT_ID", "anonymous-user")

# History and report windows
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "50"))
REPORT_LIST_LIMIT = int(os.getenv("REPORT_LIST_LIMIT", "20"))
REPORT_WINDOW = int(os.getenv("REPORT_WINDOW", "10"))

# Forward head angles above this are treated as measurement noise in reports
MAX_PLAUSIBLE_FORWARD_HEAD = float(os.getenv("MAX_PLAUSIBLE_FORWARD_HEAD", "30"))

# AI assistant providers (both optional; a canned responder is always available)
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
CHAT_TIMEOUT_S = float(os.getenv("CHAT_TIMEOUT_S", "20"))
