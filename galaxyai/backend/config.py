"""GalaxyAI configuration."""

import os
from pathlib import Path
from dotenv import load_dotenv

# ── Base directory ────────────────────────────────────────────
_env_base = os.environ.get("GALAXYAI_BASE_DIR")
if _env_base:
    BASE_DIR = Path(_env_base)
else:
    BASE_DIR = Path(__file__).parent.parent

# ── .env loading ──────────────────────────────────────────────
load_dotenv(BASE_DIR / ".env")

# Paths
DATA_DIR = Path(os.environ.get("GALAXYAI_DATA_DIR", str(BASE_DIR / "data")))
LOGS_DIR = Path(os.environ.get("GALAXYAI_LOGS_DIR", str(BASE_DIR / "logs")))
SETTINGS_FILE = DATA_DIR / "settings.json"

# Providers
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
CLAUDE_MODEL = os.environ.get("CLAUDE_MODEL", "claude-sonnet-4-5-20250929")

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
OPENROUTER_MODEL = os.environ.get("OPENROUTER_MODEL", "anthropic/claude-3.5-sonnet")
OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_BASE_URL = os.environ.get(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)

OLLAMA_URL = os.environ.get("OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL = os.environ.get("OLLAMA_MODEL", "llama3.2")

REQUEST_TIMEOUT = float(os.environ.get("GALAXYAI_REQUEST_TIMEOUT", "60"))
MAX_TOKENS = int(os.environ.get("GALAXYAI_MAX_TOKENS", "4096"))

# Orchestration
DEFAULT_PROVIDER = os.environ.get("GALAXYAI_PROVIDER", "claude")
ENABLE_FALLBACK = os.environ.get("GALAXYAI_ENABLE_FALLBACK", "true").lower() in ("1", "true", "yes")

# Context cache
CACHE_TTL_SECONDS = float(os.environ.get("GALAXYAI_CACHE_TTL", "300"))
MAX_CACHED_CONTEXTS = int(os.environ.get("GALAXYAI_MAX_CONTEXTS", "10"))
MAX_CACHED_PROJECTIONS = int(os.environ.get("GALAXYAI_MAX_PROJECTIONS", "50"))
MAX_AI_OBJECTS = int(os.environ.get("GALAXYAI_MAX_AI_OBJECTS", "200"))

# Server
HOST = os.environ.get("GALAXYAI_HOST", "127.0.0.1")
PORT = int(os.environ.get("GALAXYAI_PORT", "8092"))
