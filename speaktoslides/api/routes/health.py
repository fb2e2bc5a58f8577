"""Health check."""

from fastapi import APIRouter, Depends

from speaktoslides import __version__
from speaktoslides.api.dependencies import AppContext, get_context

router = APIRouter(tags=["health"])


@router.get("/api/health")
async def health(context: AppContext = Depends(get_context)):
    return {
        "status": "healthy",
        "environment": context.settings.environment,
        "version": __version__,
        "telegram_configured": context.telegram_client.configured,
        "transcription_available": context.transcriber.available,
    }
