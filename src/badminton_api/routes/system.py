"""
Connectivity and platform webhook endpoints.

Endpoints:
- GET  /api/test                   – Liveness probe used by the frontend
- POST /webhooks/app_uninstalled   – Acknowledge the storefront uninstall webhook
"""

import logging

from fastapi import APIRouter, Request, Response

from ..models import MessageResponse


logger = logging.getLogger(__name__)

api_router = APIRouter(tags=["system"])
webhooks_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@api_router.get("/test", response_model=MessageResponse, summary="Check API connectivity")
async def api_test():
    return MessageResponse(message="API is working!")


@webhooks_router.post("/app_uninstalled", summary="App uninstalled webhook")
async def app_uninstalled(request: Request):
    """Acknowledge immediately; there is no shop state to clean up."""
    shop = request.headers.get("x-shopify-shop-domain", "unknown")
    logger.info("App uninstalled for shop %s", shop)
    return Response(status_code=200)
