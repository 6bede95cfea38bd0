"""
Utterance cleanup and built-in voice commands.

Pure functions: no IO, no state.
"""

from __future__ import annotations

import re

from constants import HELP_COMMANDS, MODEL_SWITCH_TRIGGERS, RESET_COMMANDS, WAKE_WORDS

_WAKE_WORD = re.compile(
    r"^(?:" + "|".join(re.escape(w) for w in WAKE_WORDS) + r")\b,?\s*",
    re.IGNORECASE,
)

_TRAILING_PUNCT = "?!.,"


def clean_input(utterance: str) -> str:
    """Strip a leading wake word (with optional comma) and surrounding space."""
    return _WAKE_WORD.sub("", utterance.strip()).strip()


def normalize_command(text: str) -> str:
    return text.strip().lower().rstrip(_TRAILING_PUNCT + " \t\r\n").strip()


def is_help(text: str) -> bool:
    return normalize_command(text) in HELP_COMMANDS


def is_reset(text: str) -> bool:
    return normalize_command(text) in RESET_COMMANDS


def is_model_switch(text: str) -> bool:
    haystack = text.lower()
    return any(trigger in haystack for trigger in MODEL_SWITCH_TRIGGERS)
