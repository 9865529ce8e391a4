"""
FastAPI application for the property search surface.

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend import InMemoryBackend, RestBackend
from core import (
    InMemoryPreferenceStore,
    InvalidVoiceTransition,
    JsonFilePreferenceStore,
    PreferenceStore,
    PresetValidationError,
    SearchController,
    SearchSession,
    SuggestionFetcher,
)
from utils.config import Config
from web.search_routes import router as search_router


logger = logging.getLogger(__name__)


# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]


def build_backend(config: Config):
    """RestBackend when a backend URL is configured, else the in-memory store."""
    if config.backend_url:
        logger.info("Using REST backend at %s", config.backend_url)
        return RestBackend(
            base_url=config.backend_url,
            api_key=config.backend_api_key,
            page_size=config.page_size,
            timeout=config.request_timeout,
        )
    logger.info("BACKEND_URL not set; serving generated in-memory listings")
    return InMemoryBackend(page_size=config.page_size)


def build_preferences(config: Config) -> PreferenceStore:
    if config.preferences_path:
        return JsonFilePreferenceStore(config.preferences_path)
    return InMemoryPreferenceStore()


def create_app(
    config: Optional[Config] = None,
    backend=None,
    preferences: Optional[PreferenceStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Settings; loaded from the environment when omitted
        backend: Query, suggestion and analysis backend; chosen from config when omitted
        preferences: Preference store; chosen from config when omitted
    """
    config = config or Config.load()
    debug_mode = config.debug and not IS_PRODUCTION

    app = FastAPI(
        title="Property Search",
        description="Cached property search with voice commands and image similarity ranking",
        version="0.1.0",
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=debug_mode,
    )

    # Healthcheck endpoints first; no dependencies, no IO
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck. No dependencies, no IO."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Secondary health endpoint. No dependencies, no IO."""
        return {"status": "healthy"}

    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["*"],
        )

    # =========================================================================
    # Error mapping
    # =========================================================================

    @app.exception_handler(PresetValidationError)
    async def preset_validation_handler(request: Request, exc: PresetValidationError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(InvalidVoiceTransition)
    async def voice_transition_handler(request: Request, exc: InvalidVoiceTransition):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # =========================================================================
    # Session wiring
    # =========================================================================

    backend = backend or build_backend(config)
    preferences = preferences or build_preferences(config)

    session = SearchSession(
        fetch=backend.query,
        preferences=preferences,
        stale_time_ms=config.cache_stale_time_ms,
        confidence_threshold=config.voice_confidence_threshold,
        voice_history_limit=config.voice_history_limit,
    )
    app.state.config = config
    app.state.backend = backend
    app.state.session = session
    app.state.controller = SearchController(session, query_api=backend, analysis_api=backend)
    app.state.suggestions = SuggestionFetcher(
        backend,
        debounce_ms=config.suggestion_debounce_ms,
        min_length=config.suggestion_min_length,
    )

    app.include_router(search_router)

    @app.get("/api/health")
    async def api_health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": "0.1.0",
            "environment": "production" if IS_PRODUCTION else "development",
            "backend": "rest" if config.backend_url else "memory",
        }

    return app


# Create app instance for uvicorn
app = create_app()
