"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral constants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here
  (or in AppConfig when it is deployment-specific).
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Platform reply budget
# =============================================================================

# Hard wall-clock limit enforced by the voice platform
PLATFORM_REPLY_LIMIT_S: Final[float] = 4.5

# Soft budget: filler reply goes out once this much time has passed
DEFAULT_SLA_S: Final[float] = 4.3

# Reserved out of the soft budget for writing the pending record
PENDING_WRITE_MARGIN_S: Final[float] = 0.05

# Absolute budget for background work before the session is reset
DEFAULT_MAX_WAIT_S: Final[float] = 30.0

# =============================================================================
# Model loop
# =============================================================================

DEFAULT_MAX_TOOL_ITERATIONS: Final[int] = 3

# Per-call timeout = max(MIN, min(remaining, MAX))
DEFAULT_MIN_CALL_TIMEOUT_S: Final[float] = 1.0
DEFAULT_MAX_CALL_TIMEOUT_S: Final[float] = 25.0
MAX_CONNECT_TIMEOUT_S: Final[float] = 3.0

DEFAULT_MODEL_ID: Final[str] = "openai/gpt-oss-20b:free"
DEFAULT_LLM_BASE_URL: Final[str] = "https://openrouter.ai/api/v1"

# =============================================================================
# Search tool
# =============================================================================

SEARCH_TOOL_NAME: Final[str] = "search_internet"
SEARCH_ENDPOINT: Final[str] = "https://www.googleapis.com/customsearch/v1"
SEARCH_RESULT_COUNT: Final[int] = 5
SEARCH_TIMEOUT_S: Final[float] = 5.0

# =============================================================================
# Reply envelope
# =============================================================================

MAX_RESPONSE_CHARS: Final[int] = 1024
DEFAULT_ENVELOPE_VERSION: Final[str] = "1.0"

# =============================================================================
# User-facing texts
# =============================================================================

TECH_ERROR_MESSAGE: Final[str] = (
    "A technical error occurred. Please try again later."
)
WAITING_MESSAGE: Final[str] = (
    "Let me think about that. In a few seconds, ask me: done?"
)
STILL_WAITING_TEMPLATE: Final[str] = (
    "Still thinking, {elapsed} seconds so far. Ask me again in a few seconds: done?"
)
SESSION_RESET_MESSAGE: Final[str] = (
    "The answer never came together, let's start over."
)
NO_ANSWER_MESSAGE: Final[str] = (
    "I couldn't come up with an answer. Please try asking again."
)
RESET_CONFIRMATION_MESSAGE: Final[str] = (
    "Okay, let's start from scratch."
)
GREETING_TEMPLATE: Final[str] = (
    "{model} here! Ask me anything or say 'help' to hear what I can do."
)
HELP_MESSAGE: Final[str] = (
    "I'm a voice assistant in the spirit of ChatGPT. I answer any question and "
    "can keep a long conversation on any topic. I can search the internet when "
    "you ask me to. Say 'switch model' to try another model without losing the "
    "thread, or 'start over' to clear the conversation."
)
MODEL_SWITCH_TEMPLATE: Final[str] = "Switching to: {model}"

# =============================================================================
# Commands
# =============================================================================

WAKE_WORDS: Final[Tuple[str, ...]] = ("alice", "alisa")

HELP_COMMANDS: Final[Tuple[str, ...]] = (
    "help",
    "what can you do",
)

RESET_COMMANDS: Final[Tuple[str, ...]] = (
    "start over",
    "reset",
    "new conversation",
)

# Matched as substrings of the lowercased utterance
MODEL_SWITCH_TRIGGERS: Final[Tuple[str, ...]] = (
    "switch model",
    "change model",
)

# =============================================================================
# Storage
# =============================================================================

STORAGE_BLOB_SUFFIX: Final[str] = ".json.gz"
STORAGE_LEGACY_SUFFIX: Final[str] = ".json"
STORAGE_TIMESTAMP_FORMAT: Final[str] = "%Y%m%d_%H%M%S"
STORAGE_GZIP_LEVEL: Final[int] = 5

# Pruning kicks in once a directory holds more than this many blobs
STORAGE_MAX_FILES: Final[int] = 100
STORAGE_RETENTION_S: Final[int] = 4 * 3600

SESSION_ID_FALLBACK: Final[str] = "session"
