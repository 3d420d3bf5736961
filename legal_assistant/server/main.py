"""
FastAPI Application Entry Point.

Legal Assistant API - streaming case-law answers with LLM failover

Run with:
    uvicorn legal_assistant.server.main:app --host 0.0.0.0 --port 8000

Or for development:
    uvicorn legal_assistant.server.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .api import router
from .dependencies import shutdown, startup_load

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Loads the embedding model, case index and LLM clients on startup.
    """
    logger.info("Starting Legal Assistant API Server...")

    startup_load()

    yield

    logger.info("Shutting down Legal Assistant API Server...")
    await shutdown()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
## Legal Assistant API

Retrieval-augmented answers on Indian case law, streamed as server-sent events.

### Features

- **Grounded answers**: Relevant judgments from the case index are injected into the prompt
  and returned as citations before the answer text
- **Provider failover**: Gemini key rotation with an OpenAI-compatible fallback
- **Chat history**: Per-user chats with a free usage limit
- **Document summarization**: Summary, similar cases and statute identification
""",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(router, prefix="/api", tags=["Legal Assistant"])

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/api/health",
            "chats": "/api/chats",
            "summarize": "/api/summarize",
        }

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "legal_assistant.server.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
