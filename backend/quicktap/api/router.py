"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from quicktap.api.routes import admin, seats

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(admin.router)
api_router.include_router(seats.router)
