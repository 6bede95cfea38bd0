"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Initialize shared resources (LLM client, stores, engine)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI

from adapters.llm.base import ChatTransport
from adapters.llm.openrouter import OpenRouterTransport, build_llm_client
from config import AppConfig
from observability.logger import log_event
from orchestrator.runtime import TurnOrchestrator
from server.routes import register_routes
from services.model_catalog import ModelCatalog
from services.search_service import SearchService
from session.continuation import ContinuationEngine
from storage.session_store import FileSessionStore, SessionRepository


def build_engine(config: AppConfig, transport: ChatTransport | None = None) -> ContinuationEngine:
    """Wire the continuation engine and its collaborators from config."""
    if transport is None:
        if not config.llm_api_key:
            raise RuntimeError("OPENROUTER_API_KEY environment variable not set")
        transport = OpenRouterTransport(client=build_llm_client(config))

    orchestrator = TurnOrchestrator(
        transport=transport,
        search=SearchService(api_key=config.google_api_key, cx=config.google_cx),
        max_iterations=config.max_tool_iterations,
        min_call_timeout_s=config.min_call_timeout_s,
        max_call_timeout_s=config.max_call_timeout_s,
    )

    repository = SessionRepository(
        conversations=FileSessionStore(config.conversation_dir),
        pending=FileSessionStore(config.pending_dir),
    )

    catalog = ModelCatalog(
        list_path=config.model_list_path,
        state_path=config.model_state_path,
        default_model_id=config.model_id,
    )

    return ContinuationEngine(
        orchestrator=orchestrator,
        repository=repository,
        catalog=catalog,
        sla_s=config.sla_s,
        max_wait_s=config.max_wait_s,
        grace_s=config.min_call_timeout_s,
    )


def create_app(
    config: AppConfig | None = None,
    engine: ContinuationEngine | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with a prebuilt engine
    - Environment-specific setup
    - ASGI server compatibility
    """
    config = config or AppConfig.load_from_env()

    app = FastAPI(title="Voice Assistant Proxy")

    app.state.config = config

    # One engine (and one LLM client) per process
    app.state.engine = engine or build_engine(config)

    log_event({
        "event_type": "APP_STARTED",
        "env": config.env,
        "model": app.state.engine.current_model_id,
        "sla_s": config.sla_s,
        "max_wait_s": config.max_wait_s,
    })

    # Routes
    register_routes(app)

    return app
