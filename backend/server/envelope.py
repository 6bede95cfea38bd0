"""
Voice platform request/response envelope.

Inbound:
    {"session": {"session_id": "...", ...},
     "request": {"original_utterance": "..."},
     "version": "1.0"}

Outbound:
    {"session": <echoed>, "version": <echoed>,
     "response": {"end_session": false, "text": "...", "tts": "..."}}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from constants import DEFAULT_ENVELOPE_VERSION, MAX_RESPONSE_CHARS


class EnvelopeError(ValueError):
    """Body is not a usable envelope (bad JSON or no session id)."""


@dataclass(frozen=True)
class InboundTurn:
    session_id: str
    utterance: str
    session: dict[str, Any]
    version: Any


def parse_envelope(body: bytes) -> InboundTurn:
    try:
        data = json.loads(body or b"null")
    except ValueError as exc:
        raise EnvelopeError("body is not JSON") from exc

    if not isinstance(data, dict):
        raise EnvelopeError("body is not an object")

    session = data.get("session")
    if not isinstance(session, dict):
        raise EnvelopeError("session missing")

    session_id = session.get("session_id")
    if session_id is None or isinstance(session_id, (dict, list, bool)) or str(session_id) == "":
        raise EnvelopeError("session_id missing")

    request = data.get("request")
    utterance = request.get("original_utterance") if isinstance(request, dict) else None

    return InboundTurn(
        session_id=str(session_id),
        utterance=utterance if isinstance(utterance, str) else "",
        session=session,
        version=data.get("version") or DEFAULT_ENVELOPE_VERSION,
    )


def truncate(text: str, limit: int = MAX_RESPONSE_CHARS) -> str:
    return text if len(text) <= limit else text[:limit]


def build_response(turn: InboundTurn, text: str) -> dict[str, Any]:
    return {
        "session": turn.session,
        "version": turn.version,
        "response": {
            "end_session": False,
            "text": truncate(text),
            # empty tts: the platform speaks text
            "tts": "",
        },
    }
