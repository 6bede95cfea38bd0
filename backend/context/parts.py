"""
Message content parts.

Responsibilities:
- Decode heterogeneous message-content shapes into a canonical,
  ordered, never-empty list of typed parts
- Render parts back into a flat display string
- Encode parts back into the chat-completion wire format

Non-responsibilities:
- No storage
- No knowledge of roles or tool calls

Content is decoded once at ingestion; nothing downstream inspects raw
shapes again.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from constants import TECH_ERROR_MESSAGE


@dataclass(frozen=True)
class TextPart:
    """Plain text content."""
    text: str
    type: str = field(default="text", init=False)


@dataclass(frozen=True)
class OpaquePart:
    """
    Any non-text part (images, audio, provider extensions).

    Carried verbatim so newer content types survive a round trip.
    """
    type: str
    raw: Mapping[str, Any]


ContentPart = Union[TextPart, OpaquePart]


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------

def normalize(content: Any) -> list[ContentPart]:
    """
    Coerce any content shape into a non-empty list of parts.

    - str -> one text part
    - list -> each element: str -> text part; mapping with type "text"
      (or no type) -> text part; other mapping -> opaque part; anything
      else dropped
    - empty or entirely invalid input -> one TECH_ERROR_MESSAGE part

    Never raises.
    """
    if isinstance(content, str):
        return [TextPart(text=content)]

    parts: list[ContentPart] = []

    if isinstance(content, (list, tuple)):
        for item in content:
            part = _decode_part(item)
            if part is not None:
                parts.append(part)

    if not parts:
        parts.append(TextPart(text=TECH_ERROR_MESSAGE))

    return parts


def _decode_part(item: Any) -> ContentPart | None:
    if isinstance(item, (TextPart, OpaquePart)):
        return item

    if isinstance(item, str):
        return TextPart(text=item)

    if not isinstance(item, Mapping):
        return None

    part_type = item.get("type", "text")
    if part_type == "text":
        text = item.get("text")
        return TextPart(text="" if text is None else str(text))

    return OpaquePart(type=str(part_type), raw=dict(item))


# ------------------------------------------------------------------
# Rendering / encoding
# ------------------------------------------------------------------

def render(parts: list[ContentPart]) -> str:
    """
    Join the stripped, non-empty text of all text parts with newlines.

    Non-text parts are ignored. Never returns an empty string.
    """
    texts = [
        p.text.strip()
        for p in parts
        if isinstance(p, TextPart) and p.text.strip()
    ]
    text = "\n".join(texts).strip()
    return text if text else TECH_ERROR_MESSAGE


def to_wire(parts: list[ContentPart]) -> list[dict[str, Any]]:
    """Encode parts as chat-completion content entries."""
    wire: list[dict[str, Any]] = []
    for p in parts:
        if isinstance(p, TextPart):
            wire.append({"type": "text", "text": p.text})
        else:
            wire.append(dict(p.raw))
    return wire
