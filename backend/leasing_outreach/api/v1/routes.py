"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from leasing_outreach.api.v1.endpoints import (
    health,
    outreach,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(outreach.router)
api_router.include_router(webhooks.router)
