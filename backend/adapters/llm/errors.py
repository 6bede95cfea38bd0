"""
Failure taxonomy for model and tool calls.

Rules:
- Adapters raise these; they never format user-facing text.
- describe_error() is the single place exceptions become
  human-readable text for a synthetic assistant turn.

Semantics by class:

TransportTimeout:
    The call exceeded its time budget. Callers route this to the
    filler/continuation path, never to a user-visible error.

ConnectionFailure:
    Network-level failure that is not a timeout (DNS, refused, reset).

HttpStatusFailure:
    Non-2xx response; carries the status code and the response body.

MalformedResponse:
    2xx response whose payload has no usable message.

ToolFailure:
    Bad tool arguments or unknown tool name. Contained to a single
    tool turn, never aborts a round.
"""

from __future__ import annotations


class TransportError(Exception):
    """Base class for chat-completion transport failures."""


class TransportTimeout(TransportError):
    """The call did not complete within its timeout."""


class ConnectionFailure(TransportError):
    """Network-level failure other than a timeout."""

    def __init__(self, message: str, *, errno: int | None = None) -> None:
        super().__init__(message)
        self.errno = errno


class HttpStatusFailure(TransportError):
    """Non-2xx response from the completion endpoint."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


class MalformedResponse(TransportError):
    """2xx response with an unusable payload shape."""


class ToolFailure(Exception):
    """Bad arguments or unknown tool name for one tool call."""


# ------------------------------------------------------------------
# Formatting
# ------------------------------------------------------------------

def format_code(code: object) -> str:
    if code is None or code == "" or code == 0:
        return "N/A"
    return str(code)


def describe_error(exc: BaseException) -> str:
    """
    Human-readable text for a failed call.

    May return an empty string when the exception carries neither a code
    nor details; callers substitute TECH_ERROR_MESSAGE.
    """
    if isinstance(exc, HttpStatusFailure):
        details = exc.body.strip()
        if not details:
            return f"Model API error code={format_code(exc.status_code)}"
        return f"Model API error code={format_code(exc.status_code)} {details}"

    if isinstance(exc, ConnectionFailure):
        details = str(exc).strip()
        if not details:
            if exc.errno is None:
                return ""
            return f"Connection error to model API code={format_code(exc.errno)}"
        return f"Connection error to model API code={format_code(exc.errno)} {details}"

    code = getattr(exc, "code", None)
    if not isinstance(code, (int, str)):
        code = None
    details = str(exc).strip()
    if not details:
        return f"Internal error code={format_code(code)}" if code else ""
    return f"Internal error code={format_code(code)} {details}"
