"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No user-facing texts (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from constants import (
    DEFAULT_LLM_BASE_URL,
    DEFAULT_MAX_CALL_TIMEOUT_S,
    DEFAULT_MAX_TOOL_ITERATIONS,
    DEFAULT_MAX_WAIT_S,
    DEFAULT_MIN_CALL_TIMEOUT_S,
    DEFAULT_MODEL_ID,
    DEFAULT_SLA_S,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the continuation engine and adapters.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # LLM configuration
    # ------------------------------------------------------------------

    llm_api_key: str | None
    llm_base_url: str
    model_id: str
    site_url: str | None
    app_name: str | None

    # ------------------------------------------------------------------
    # Search tool
    # ------------------------------------------------------------------

    google_api_key: str | None
    google_cx: str | None

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    storage_dir: Path
    model_list_path: Path
    model_state_path: Path

    # ------------------------------------------------------------------
    # Deadlines
    # ------------------------------------------------------------------

    sla_s: float = DEFAULT_SLA_S
    max_wait_s: float = DEFAULT_MAX_WAIT_S
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS
    min_call_timeout_s: float = DEFAULT_MIN_CALL_TIMEOUT_S
    max_call_timeout_s: float = DEFAULT_MAX_CALL_TIMEOUT_S

    @property
    def conversation_dir(self) -> Path:
        """Directory holding per-session conversation blobs."""
        return self.storage_dir / "conversations"

    @property
    def pending_dir(self) -> Path:
        """Directory holding per-session pending-state blobs."""
        return self.storage_dir / "pending"

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        storage_dir = Path(os.environ.get("STORAGE_DIR", "storage"))

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            llm_api_key=(
                os.environ.get("OPENROUTER_API_KEY")
                or os.environ.get("OPENAI_API_KEY")
            ),
            llm_base_url=os.environ.get("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            model_id=os.environ.get("MODEL_ID", DEFAULT_MODEL_ID),
            site_url=os.environ.get("OPENROUTER_SITE_URL") or None,
            app_name=os.environ.get("OPENROUTER_APP_NAME") or None,

            google_api_key=os.environ.get("GOOGLE_API_KEY") or None,
            google_cx=os.environ.get("GOOGLE_CX") or None,

            storage_dir=storage_dir,
            model_list_path=Path(
                os.environ.get("MODEL_LIST_PATH", "models.txt")
            ),
            model_state_path=Path(
                os.environ.get("MODEL_STATE_PATH", str(storage_dir / "model_state.json"))
            ),

            sla_s=float(os.environ.get("SLA_SECONDS", DEFAULT_SLA_S)),
            max_wait_s=float(os.environ.get("MAX_WAIT_SECONDS", DEFAULT_MAX_WAIT_S)),
            max_tool_iterations=int(
                os.environ.get("MAX_TOOL_ITERATIONS", DEFAULT_MAX_TOOL_ITERATIONS)
            ),
            min_call_timeout_s=float(
                os.environ.get("MIN_CALL_TIMEOUT_SECONDS", DEFAULT_MIN_CALL_TIMEOUT_S)
            ),
            max_call_timeout_s=float(
                os.environ.get("MAX_CALL_TIMEOUT_SECONDS", DEFAULT_MAX_CALL_TIMEOUT_S)
            ),
        )
