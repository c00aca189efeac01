"""API Routes module"""
from fastapi import APIRouter

from .flows import router as flows_router
from .tasks import router as tasks_router
from .comments import router as comments_router
from .settings import router as settings_router
from .reservations import router as reservations_router
from .notifications import router as notifications_router

# Main API router
api_router = APIRouter()

# Include all route modules
api_router.include_router(flows_router, prefix="/flows", tags=["Flows"])
api_router.include_router(tasks_router, prefix="/flows", tags=["Tasks"])
api_router.include_router(comments_router, prefix="/comments", tags=["Comments"])
api_router.include_router(settings_router, prefix="/settings", tags=["Settings"])
api_router.include_router(reservations_router, prefix="/reservations", tags=["Reservations"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

__all__ = ["api_router"]
