"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import __version__
from backend.core.config import get_settings
from backend.core.database import init_db
from backend.core.logging_config import configure_logging
from backend.storage.migration import seed_from_directory

from backend.conversation.router import router as query_router
from backend.providers.router import router as providers_router
from backend.rules.router import decisions_router, jurisdictions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    configure_logging(settings)
    logger.info("Starting %s...", settings.app_name)

    init_db()
    if settings.seed_on_startup:
        result = seed_from_directory(settings.rules_dir)
        logger.info("Seeded rule sets: %s", ", ".join(result["rulesets"]) or "none")

    yield

    # Shutdown
    logger.info("Shutting down...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Conversational municipal compliance answers backed by deterministic rules",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware - configurable via CORS_ORIGINS env var
    cors_origins_str = os.getenv("CORS_ORIGINS", "*")
    cors_origins = cors_origins_str.split(",") if cors_origins_str != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(query_router)          # /query
    app.include_router(decisions_router)      # /decisions
    app.include_router(jurisdictions_router)  # /jurisdictions
    app.include_router(providers_router)      # /providers

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "endpoints": {
                "query": "/query - Conversational compliance questions",
                "decisions": "/decisions - Direct rule evaluation with explicit inputs",
                "jurisdictions": "/jurisdictions - Configured jurisdictions",
                "providers": "/providers - AI provider status and fallback chain",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
