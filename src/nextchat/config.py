"""Central configuration for paths and constants."""

import os
from pathlib import Path

APP_NAME = "nextchat"

# Data directory, override with NEXTCHAT_DATA_DIR env var
DATA_DIR = Path(os.environ.get("NEXTCHAT_DATA_DIR", str(Path.home() / ".nextchat")))

# Key-value state database
STATE_DB_NAME = "state.db"
STATE_PATH = DATA_DIR / STATE_DB_NAME

# Storage keys
CONVERSATIONS_KEY = "conversations"
SETTINGS_KEY = "apiSettings"
ACTIVE_KEY = "activeConversation"

# Fields revived from ISO strings into datetimes on load
DATE_FIELDS = {"lastUpdated", "timestamp"}

DEFAULT_TITLE = "New Chat"

# Default API settings, used until settings are saved
DEFAULT_BASE_URL = os.environ.get("OPENAI_API_BASE", "")
DEFAULT_MODEL = os.environ.get("OPENAI_API_MODEL", "")
DEFAULT_API_KEY = os.environ.get("OPENAI_API_KEY", "")
DEFAULT_TEMPERATURE = float(os.environ.get("OPENAI_API_TEMPERATURE", "0.7"))

# Seconds; unset means the request never times out
_timeout = os.environ.get("NEXTCHAT_REQUEST_TIMEOUT")
REQUEST_TIMEOUT = float(_timeout) if _timeout else None

# Streaming wire format
COMPLETIONS_PATH = "/chat/completions"
DATA_PREFIX = "data: "
DONE_LINE = "data: [DONE]"
GENERIC_HTTP_ERROR = "Request failed"

EXPORT_PREFIX = f"{APP_NAME}-export"
