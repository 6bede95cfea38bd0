"""
Model loop state enumeration.

Rules:
- This enum defines ONLY the loop's control states.
- No behavior, no helper methods, no side effects.
- Transitions live in orchestrator.runtime.
"""

from __future__ import annotations

from enum import Enum


class LoopState(str, Enum):
    """
    Control states of one bounded ask -> tool -> ask run.

    ITERATING -> AWAITING_MODEL -> GOT_TOOL_CALLS -> ITERATING
                                -> GOT_FINAL_TEXT -> DONE
    DEADLINE_EXCEEDED is the side exit, checked before each model call
    and after each tool round.
    """

    ITERATING = "ITERATING"
    AWAITING_MODEL = "AWAITING_MODEL"
    GOT_TOOL_CALLS = "GOT_TOOL_CALLS"
    GOT_FINAL_TEXT = "GOT_FINAL_TEXT"
    DONE = "DONE"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
