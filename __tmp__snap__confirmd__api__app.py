"""FastAPI application for the Confirmd verification service."""

import contextlib
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables from .env file
load_dotenv()

from ..domain.errors import (
    ConfirmdError,
    FatalPipelineError,
    NotFoundError,
    TransientExternalError,
    ValidationFailure,
)
from ..infrastructure.dependencies import get_service_container
from .endpoints import claims, health, pipeline, stories

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# Create FastAPI application
app = FastAPI(
    title="Confirmd API",
    description="Crypto news verification: claims, evidence, verdicts and source track records",
    version="0.1.0",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(pipeline.router)
app.include_router(claims.router)
app.include_router(stories.router)


@app.exception_handler(ConfirmdError)
async def confirmd_error_handler(request: Request, exc: ConfirmdError) -> JSONResponse:
    """Map domain errors onto HTTP status codes."""
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ValidationFailure):
        status_code = 400
    elif isinstance(exc, TransientExternalError):
        status_code = 502
    elif isinstance(exc, FatalPipelineError):
        status_code = 503
    else:
        status_code = 500
    if status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Set up the service container on startup and release it on shutdown."""
    container = get_service_container()
    await container.initialize()
    if container.config.run_on_startup:
        container.get_pipeline().start_scheduler()

    yield  # Application runs here

    await container.shutdown()


# Set lifespan handler
app.router.lifespan_context = lifespan


