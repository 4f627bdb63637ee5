"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from remarketing_service.api.v1 import follow_ups, health, webhooks

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"],
)

api_router.include_router(
    follow_ups.router,
    prefix="/follow-ups",
    tags=["Follow-ups"],
)
