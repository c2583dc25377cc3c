"""Health check endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...infrastructure.dependencies import ServiceContainer, get_container

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    mode: str
    language_model: Optional[str] = None
    search_provider: Optional[str] = None
    pipeline_running: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    """Report service health and which collaborators are active."""
    return HealthResponse(
        status="healthy",
        version="0.1.0",
        mode="simulation" if container.language_model_name is None else "language_model",
        language_model=container.language_model_name,
        search_provider=container.search_provider_name,
        pipeline_running=container.get_pipeline().is_running,
    )


