import os
from typing import Optional

# Model registry per request flow
MODELS = {
    "breakdown": "gpt-4o-mini",
    "reframe": "gpt-4o-mini",
}

DEFAULT_MODEL = "gpt-4o-mini"

AVAILABLE_MODELS = [
    {"id": "gpt-4o-mini", "name": "GPT-4o Mini", "description": "Fast & affordable"},
    {"id": "gpt-4o", "name": "GPT-4o", "description": "Most capable"},
    {"id": "gpt-4-turbo", "name": "GPT-4 Turbo", "description": "Balanced"},
    {"id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo", "description": "Fastest"},
]

TIMER_OPTIONS = [3, 5, 10, 15, 25]
DEFAULT_TIMER_MINUTES = 5

MAX_STEPS = 7
MIN_TASK_LENGTH = 3

# Client storage keys (one JSON blob each)
SESSION_STORAGE_KEY = "micromove-session"
SETTINGS_STORAGE_KEY = "micromove-settings"

DB_PATH = os.environ.get("MICROMOVE_DB_PATH", "micromove.db")
LOG_FILE = os.environ.get("MICROMOVE_LOG_FILE", "logs/micromove.jsonl")
API_BASE = os.environ.get("MICROMOVE_API_BASE") or None

def get_model(role: str, override: Optional[str] = None) -> str:
    """Returns the requested model, else the registry entry for the role."""
    if override:
        return override
    return MODELS.get(role, DEFAULT_MODEL)

def get_default_api_key() -> Optional[str]:
    """Server-side credential, read at call time so it can change without a restart."""
    return os.environ.get("OPENAI_API_KEY") or None
