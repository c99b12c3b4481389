"""
FastAPI application entry point for the tutor chat runtime.

Responsibilities:
- create the FastAPI app
- construct shared singletons (SessionStore, LLM client, PromptBuilder,
  TopicBoundaryValidator, ChatOrchestrator)
- include the chat routes under /chat-api and health routes under /health
- run the periodic session sweep for the lifetime of the app
"""

import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from configs.llm_config import SYSTEM_PROMPTS, TOPIC_CONCEPTS, load_topic_keywords
from configs.settings import settings
from core.api.llm_client import LLMBackend, LLMClient, UnconfiguredLLMClient
from core.chat.boundary import TopicBoundaryValidator
from core.chat.prompt_builder import PromptBuilder
from runtime.agents.chat_orchestrator import ChatOrchestrator
from runtime.logging_setup import configure_logging
from runtime.store.log_store import ConsoleLogStore, LogStore
from runtime.store.session_store import SessionStore
from . import chat_routes, health_routes


logger = logging.getLogger(__name__)


INVALID_REQUEST_REPLY = (
    "I'm sorry, but there was an issue with your request format. Please try again."
)


def build_llm_client() -> LLMBackend:
    if not settings.has_llm_api_key:
        logger.warning("[SERVER] LLM_API_KEY is not set; chat requests will fail until it is configured")
        return UnconfiguredLLMClient()
    return LLMClient(
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_seconds,
    )


def create_app(
    session_store: Optional[SessionStore] = None,
    llm_client: Optional[LLMBackend] = None,
    orchestrator: Optional[ChatOrchestrator] = None,
    sweep_interval_seconds: Optional[float] = None,
) -> FastAPI:
    """Build the app. Every collaborator can be injected for tests."""

    # -----------------------------------------------------------------------
    # Shared singletons
    # -----------------------------------------------------------------------

    if session_store is None:
        session_store = SessionStore(
            ttl_seconds=settings.session_ttl_seconds,
            history_cap=settings.session_history_cap,
        )
    if llm_client is None:
        llm_client = build_llm_client()

    if orchestrator is None:
        topic_keywords = load_topic_keywords(settings.topic_keywords_file)
        log_store = LogStore(settings.log_dir) if settings.log_dir else ConsoleLogStore()
        orchestrator = ChatOrchestrator(
            session_store=session_store,
            llm_client=llm_client,
            prompt_builder=PromptBuilder(
                system_prompts=SYSTEM_PROMPTS,
                topic_keywords=topic_keywords,
                topic_concepts=TOPIC_CONCEPTS,
            ),
            boundary_validator=TopicBoundaryValidator(topic_keywords),
            log_store=log_store,
        )

    interval = sweep_interval_seconds or settings.session_sweep_seconds

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        sweeper = asyncio.create_task(session_store.run_sweeper(interval))
        logger.info(
            "[SERVER] Started env=%s session_ttl=%ss sweep_interval=%ss",
            settings.app_env,
            session_store.ttl_seconds,
            interval,
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

    # -----------------------------------------------------------------------
    # FastAPI app + route registration
    # -----------------------------------------------------------------------

    app = FastAPI(title="Tutor Chat Backend", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Session-ID", "X-Learner-ID"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        details = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        logger.warning("[SERVER] Validation error on %s: %s", request.url.path, details)
        return JSONResponse(
            status_code=400,
            content={
                "error": True,
                "message": "Invalid request format",
                "details": details,
                "reply": INVALID_REQUEST_REPLY,
            },
        )

    # Initialize the router modules with our shared objects, then include them.
    chat_routes.init_routes(session_store=session_store, orchestrator=orchestrator)
    health_routes.init_routes(session_store=session_store, llm_client=llm_client)
    app.include_router(chat_routes.router, prefix="/chat-api")
    app.include_router(health_routes.router, prefix="/health")

    return app


configure_logging(settings.log_level)
app = create_app()
