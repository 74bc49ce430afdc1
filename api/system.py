"""
System API routes for the ocean platform: health and real-time statistics.
"""

from fastapi import APIRouter, Depends

from .services import Services, get_services

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "message": "CMLRE Ocean Platform is running",
    }


@router.get("/ws/stats")
async def get_websocket_stats(services: Services = Depends(get_services)):
    """Get WebSocket connection and training statistics."""
    return {
        "total_connections": services.registry.count(),
        "active_training_jobs": len(services.jobs.active_jobs()),
        "heartbeat_running": services.heartbeat.running,
    }
