import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from langchain_core.language_models import BaseChatModel

from persona_proxy.api.middleware import RateLimiters
from persona_proxy.api.router import api_router
from persona_proxy.config import Settings, get_settings
from persona_proxy.services.chat import ChatService, InvalidChatRequest, UpstreamError
from persona_proxy.services.history_store import HistoryStore
from persona_proxy.services.llm_provider import LLMConfigError, get_chat_llm
from persona_proxy.services.personas import Persona, PromptLoadError, load_personas
from persona_proxy.services.rate_limiter import RateLimitExceeded
from persona_proxy.tasks.cleanup import run_periodic_cleanup
from persona_proxy.utils.logging import setup_logging

logger = logging.getLogger(__name__)


MISSING_KEY_MESSAGE = "Missing LLM_API_KEY (or OPENAI_API_KEY) in environment"


class StartupError(RuntimeError):
    """Raised when the service cannot start (missing credential or prompt)."""


def check_startup(settings: Settings) -> dict[str, Persona]:
    """Fail fast on configuration the service cannot run without.

    Returns the loaded personas keyed by slug.
    """
    if not settings.has_llm_credentials:
        raise StartupError(MISSING_KEY_MESSAGE)
    try:
        return load_personas(settings.prompts_dir)
    except PromptLoadError as e:
        raise StartupError(e.message) from e


def create_app(
    settings: Settings | None = None,
    llm: BaseChatModel | None = None,
) -> FastAPI:
    """Build the application. ``llm`` overrides the configured provider."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup/shutdown lifecycle."""
        setup_logging(settings.log_level)
        logger.info("Persona chat proxy starting up...")

        try:
            personas = check_startup(settings)
            chat_llm = llm if llm is not None else get_chat_llm(settings)
        except StartupError as e:
            logger.error(f"Startup failed: {e}")
            raise
        except LLMConfigError as e:
            logger.error(f"Startup failed: {e}")
            raise StartupError(str(e)) from e

        history = HistoryStore(
            max_history=settings.max_history,
            max_sessions=settings.max_sessions,
            idle_ttl=settings.session_idle_ttl,
        )
        rate_limiters = RateLimiters.from_settings(settings)

        app.state.settings = settings
        app.state.personas = personas
        app.state.history_store = history
        app.state.rate_limiters = rate_limiters
        app.state.chat_service = ChatService(history, chat_llm)

        cleanup_task = None
        if settings.cleanup_interval > 0:
            cleanup_task = asyncio.create_task(
                run_periodic_cleanup(history, rate_limiters, settings.cleanup_interval)
            )

        yield

        if cleanup_task is not None:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task
        logger.info("Persona chat proxy shutting down...")

    app = FastAPI(
        title="Persona Chat Proxy",
        description="Persona chat proxy with per-session history and rate limiting",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    @app.exception_handler(InvalidChatRequest)
    async def invalid_request_handler(request: Request, exc: InvalidChatRequest):
        return JSONResponse(status_code=400, content={"error": exc.message})

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"error": exc.message},
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        return JSONResponse(status_code=500, content={"error": exc.message})

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc):
        logger.exception("Internal server error")
        return JSONResponse(status_code=500, content={"error": "Something went wrong"})

    return app


app = create_app()
