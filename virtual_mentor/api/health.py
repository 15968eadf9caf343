"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends, Request

from virtual_mentor.core.config import Settings
from virtual_mentor.core.dependencies import get_settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request, app_settings: Settings = Depends(get_settings)):
    """Liveness plus whether the telephony credentials are present."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    return {
        "status": "healthy",
        "telephonyConfigured": not app_settings.missing_livekit_variables(),
    }
