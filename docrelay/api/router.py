"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from docrelay.api.health import router as health_router
from docrelay.api.scanner_webhook import router as scanner_router
from docrelay.api.submissions import router as submissions_router
from docrelay.api.whatsapp_webhook import router as whatsapp_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(whatsapp_router)
api_router.include_router(scanner_router)
api_router.include_router(submissions_router)
