"""
Health Check and System Status API
"""
from fastapi import APIRouter, HTTPException
from typing import Dict, Any
from datetime import datetime
from loguru import logger
import psutil

from app.core.config import settings
from app.services.publisher import schema_publisher

router = APIRouter()


async def check_server() -> Dict[str, Any]:
    """Open a short-lived channel and run SELECT 1"""
    channel = schema_publisher.channel_factory()
    async with channel:
        value = await channel.fetchval("SELECT 1")
    return {"status": "healthy", "connected": value == 1}


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Comprehensive health check endpoint
    """
    start_time = datetime.now()
    health_status = {
        "status": "healthy",
        "timestamp": start_time.isoformat(),
        "version": settings.APP_VERSION,
        "checks": {}
    }

    try:
        health_status["checks"]["database"] = await check_server()
    except Exception as e:
        health_status["checks"]["database"] = {
            "status": "unhealthy",
            "error": str(e)
        }
        health_status["status"] = "degraded"

    last_result = schema_publisher.last_result
    health_status["checks"]["publisher"] = {
        "state": schema_publisher.state.value,
        "busy": schema_publisher.publish_lock.locked(),
        "last_success": last_result.success if last_result else None
    }

    health_status["metrics"] = {
        "cpu_percent": psutil.cpu_percent(interval=0.1),
        "memory": {
            "percent": psutil.virtual_memory().percent,
            "available_mb": psutil.virtual_memory().available / 1024 / 1024
        }
    }

    response_time_ms = (datetime.now() - start_time).total_seconds() * 1000
    health_status["response_time_ms"] = round(response_time_ms, 2)

    return health_status


@router.get("/ready")
async def readiness_check() -> Dict[str, Any]:
    """
    Readiness probe: the target server must accept a connection
    """
    try:
        await check_server()
        return {
            "ready": True,
            "timestamp": datetime.now().isoformat()
        }
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        raise HTTPException(status_code=503, detail="Service not ready")


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    """
    Liveness probe endpoint
    """
    return {
        "alive": True,
        "timestamp": datetime.now().isoformat()
    }
