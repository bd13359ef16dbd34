"""
Marketing AI - Main Entry Point

Relays marketing requests from the browser UI to the OpenAI chat
completions API with rate limiting, retry/backoff and response
normalization.

Usage:
    python -m marketing_ai.main

Environment Variables:
    MARKETING_HOST          - Server host (default: 0.0.0.0)
    MARKETING_PORT          - Server port (default: 8000)
    OPENAI_API_KEY          - OpenAI credential (required per request)
    OPENAI_MODEL            - Model (default: gpt-3.5-turbo)
    COMPLETION_MAX_RETRIES  - Retries on 429/5xx (default: 4)
    RATE_LIMIT_WINDOW       - Rate limit window in seconds (default: 60)
    RATE_LIMIT_MAX          - Requests per window per client (default: 20)
    CORS_ORIGINS            - Comma-separated allowed origins (default: *)
    DEBUG                   - Enable debug logging
"""

import logging
import os
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api import router as api_router
from .completion_client import completion_client
from .config import config
from .errors import MarketingAIError, MethodNotAllowed
from .rate_limiter import limiter

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG") else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""

    logger.info("=" * 60)
    logger.info("Marketing AI Starting")
    logger.info("=" * 60)

    if not config.has_api_key:
        logger.warning("OPENAI_API_KEY not set - requests will fail with 500")

    logger.info(f"OpenAI URL: {config.openai_url}")
    logger.info(f"OpenAI Model: {config.openai_model}")
    logger.info(f"Retries: {config.max_retries} (base delay {config.base_delay}s)")
    logger.info(f"Rate limit: {config.rate_limit_max} requests / {config.rate_limit_window:g}s per client")

    logger.info("-" * 60)
    logger.info(f"Server ready at http://{config.host}:{config.port}")
    logger.info(f"Endpoint: http://{config.host}:{config.port}/api/ai")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down...")
    await completion_client.close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Marketing AI",
    description=(
        "Generates captions, hashtags, audits, messages and posts "
        "through the OpenAI chat completions API."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(api_router)


@app.exception_handler(MarketingAIError)
async def handle_marketing_error(request: Request, exc: MarketingAIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.to_headers())


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 405:
        error = MethodNotAllowed("Method not allowed. Use POST.")
        return JSONResponse(status_code=405, content=error.to_body(), headers=exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(Exception)
async def handle_unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error in request")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "model": config.openai_model,
        "api_key_configured": config.has_api_key,
        "rate_limited_clients": limiter.client_count,
    }


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "name": "Marketing AI",
        "version": __version__,
        "actions": ["caption", "hashtags", "audit", "message", "post"],
        "endpoints": {
            "ai": "/api/ai",
            "health": "/health",
        },
    }


def main():
    """Run the server."""
    uvicorn.run(
        "marketing_ai.main:app",
        host=config.host,
        port=config.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
