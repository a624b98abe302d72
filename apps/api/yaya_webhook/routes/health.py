"""Health and development helper routes."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from yaya_webhook import __version__

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "yaya-webhook",
        "version": __version__,
    }


@router.get("/test")
async def test_webhook(request: Request):
    """Development-only pointer for exercising the webhook locally."""
    if request.app.state.settings.is_production:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "Not found"})

    return {
        "message": "Test endpoint available",
        "instructions": (
            "Sign a payload with `yaya-webhook sign payload.json` and POST it to "
            "/api/v1/webhook with the YaYa-Signature header."
        ),
    }
