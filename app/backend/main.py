"""
FastAPI application for the blueprint extraction service.

Provides endpoints for:
- Extracting one knowledge section, or the full analysis, from a blueprint PDF
- Live analysis with Server-Sent Event progress reporting
- Health checks
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .exceptions import INTERNAL_ERROR_MESSAGE, ExtractionError, MalformedJSONError
from .models import ErrorResponse, HealthResponse
from .routers import blueprint
from .services.ai import get_ai_service
from .services.pdf_service import get_pdf_service

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Blueprint Extraction Service...")
    # Initialize services on startup
    get_pdf_service()
    get_ai_service()
    logger.info(
        "Services initialized (model=%s, base_url=%s)",
        settings.llm_model,
        settings.llm_base_url,
    )
    yield
    logger.info("Shutting down Blueprint Extraction Service...")


# Create FastAPI application
app = FastAPI(
    title="Blueprint Extraction API",
    description="Structured pre-sales knowledge extraction from project blueprints using an LLM",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        message="Blueprint Extraction API is running",
        version=__version__,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(blueprint.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    """Render pipeline errors as an ``{"error": ...}`` body with their status."""
    body = ErrorResponse(error=exc.message)
    if isinstance(exc, MalformedJSONError):
        body.raw = exc.raw_excerpt
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Last-resort handler: never leak a stack trace to the caller."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
    )
