"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from feed_service.api.v1 import feed, health, interactions

api_router = APIRouter()

api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    feed.router,
    prefix="/feed",
    tags=["Feed"],
)

api_router.include_router(
    interactions.router,
    prefix="/interactions",
    tags=["Interactions"],
)
