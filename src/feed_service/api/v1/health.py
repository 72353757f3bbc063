"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from feed_service import __version__
from feed_service.config import Settings, get_settings
from feed_service.infrastructure.redis import RedisStorage, get_redis_client

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


def _storage_ready(settings: Settings) -> bool:
    if settings.storage_backend == "file":
        try:
            settings.storage_dir.mkdir(parents=True, exist_ok=True)
            marker = settings.storage_dir / ".ready"
            marker.write_text("ok", encoding="utf-8")
            marker.unlink()
            return True
        except OSError as e:
            logger.warning(
                "Storage directory not writable",
                path=str(settings.storage_dir),
                error=str(e),
            )
            return False
    if settings.storage_backend == "redis":
        return RedisStorage(get_redis_client(), namespace="health").health_check()
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status, version and configured storage backend.
    """
    settings = get_settings()

    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "storage": settings.storage_backend,
            "catalog_api": settings.catalog_api_base_url,
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
def readiness_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Verifies that the configured preference storage can be used.
    """
    checks = {"storage": _storage_ready(settings)}

    return ReadinessResponse(
        ready=all(checks.values()),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Returns 200 while the process is running."""
    return {"status": "alive"}
