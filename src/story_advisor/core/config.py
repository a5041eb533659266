# src/story_advisor/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class AppConfig:
    """
    Holds static configuration settings for the application.
    These values are set at startup and rarely change during runtime.

    Screenplay page/act thresholds and token reserves are NOT configured here;
    they live as constants beside the code that uses them so a given document
    always produces the same context payload.
    """
    # --- Model Defaults ---
    DEFAULT_MODEL_ID = os.environ.get('STORY_ADVISOR_DEFAULT_MODEL', 'claude-sonnet-4-5-20250929') # Used when a request omits model_id.
    MODEL_CONTEXT_WINDOWS_FILE = os.environ.get('STORY_ADVISOR_MODEL_WINDOWS_FILE') or None # Optional JSON file {model_id: tokens} merged over the built-in table.

    # --- Context Assembly ---
    STRUCTURE_CACHE_MAX_ENTRIES = _env_int('STORY_ADVISOR_STRUCTURE_CACHE_SIZE', 32) # Screenplay outlines kept per app instance. 0 disables the cache.
    MAX_DOCUMENT_CHARS = _env_int('STORY_ADVISOR_MAX_DOCUMENT_CHARS', 5_000_000) # Requests with larger documents are rejected with 413.

    # --- Logging ---
    LOG_LEVEL = os.environ.get('STORY_ADVISOR_LOG_LEVEL', 'INFO').upper()

APP_CONFIG = AppConfig()
