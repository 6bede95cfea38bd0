"""
Route registration for the voice assistant API.

Responsibilities:
- Define HTTP endpoints
- Parse the platform envelope and shape the reply
- Schedule continuations to run after the response is sent
- Pull dependencies from app.state
"""

from __future__ import annotations

from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from constants import TECH_ERROR_MESSAGE
from observability.logger import log_event, log_exception
from server.envelope import EnvelopeError, build_response, parse_envelope
from session.continuation import Continuation, ContinuationEngine


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.post("/")
    @app.post("/alice")
    async def voice_turn( # pyright: ignore[reportUnusedFunction]
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> Response:
        try:
            turn = parse_envelope(await request.body())
        except EnvelopeError as exc:
            log_event({
                "event_type": "ENVELOPE_REJECTED",
                "reason": str(exc),
            })
            return Response(status_code=400)

        engine: ContinuationEngine = app.state.engine

        try:
            reply = await engine.handle_turn(turn.session_id, turn.utterance)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception("TURN_FATAL_ERROR", exc, session_id=turn.session_id)
            return JSONResponse(build_response(turn, TECH_ERROR_MESSAGE))

        if reply.continuation is not None:
            background_tasks.add_task(
                _run_continuation, reply.continuation, turn.session_id
            )

        log_event({
            "event_type": "TURN_REPLIED",
            "session_id": turn.session_id,
            "text_len": len(reply.text),
            "continues": reply.continuation is not None,
        })
        return JSONResponse(build_response(turn, reply.text))


async def _run_continuation(continuation: Continuation, session_id: str) -> None:
    """Runs after the response has been flushed to the client."""
    try:
        await continuation()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        log_exception("CONTINUATION_FATAL_ERROR", exc, session_id=session_id)
