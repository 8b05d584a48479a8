"""API Routes."""

from .videos import router as videos_router
from .system import api_router as system_router, webhooks_router

__all__ = ["videos_router", "system_router", "webhooks_router"]
