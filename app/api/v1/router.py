"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from app.api.v1.dependencies (no manual repo/service construction).
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    executions,
    health,
    retry,
    triggers,
    webhooks,
    workflows,
)

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
api_router.include_router(triggers.router, prefix="/triggers", tags=["triggers"])
api_router.include_router(
    executions.router, prefix="/executions", tags=["executions"]
)
api_router.include_router(retry.router, prefix="/retry-sweep", tags=["retry"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
