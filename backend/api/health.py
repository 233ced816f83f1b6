"""
Tenant Migration - Health Check API
Monitors service health and dependencies
"""
from fastapi import APIRouter
from typing import Dict, Any
from datetime import datetime
import asyncio
import httpx

from core.config import settings
from core.database import test_connection

router = APIRouter(tags=["Health"])


async def check_database() -> Dict[str, Any]:
    """Check job store connectivity"""
    start = datetime.utcnow()
    ok = await test_connection()
    latency = (datetime.utcnow() - start).total_seconds() * 1000
    return {
        "status": "healthy" if ok else "unhealthy",
        "latency_ms": round(latency, 2) if ok else None,
        "message": "Database connection OK" if ok else "Database connection failed"
    }


async def check_platform() -> Dict[str, Any]:
    """Check that the CRM platform API answers at all"""
    if not settings.PLATFORM_API_URL:
        return {
            "status": "unconfigured",
            "latency_ms": None,
            "message": "Platform API URL not configured"
        }

    try:
        start = datetime.utcnow()
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(settings.PLATFORM_API_URL)
        latency = (datetime.utcnow() - start).total_seconds() * 1000

        # Any HTTP answer below 500 means the platform is up; auth is per request
        if response.status_code < 500:
            return {
                "status": "healthy",
                "latency_ms": round(latency, 2),
                "message": "Platform API reachable"
            }
        return {
            "status": "degraded",
            "latency_ms": round(latency, 2),
            "message": f"Platform API returned {response.status_code}"
        }
    except httpx.HTTPError as e:
        return {
            "status": "unhealthy",
            "latency_ms": None,
            "message": str(e) or e.__class__.__name__
        }


@router.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "tenant-migration",
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check - verifies the job store is reachable"""
    db_check = await check_database()

    return {
        "ready": db_check["status"] == "healthy",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "checks": {
            "database": db_check
        }
    }


@router.get("/health/live")
async def liveness_check():
    """Liveness check - verifies service is running"""
    return {
        "alive": True,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }


@router.get("/health/detailed")
async def detailed_health_check():
    """Status of the job store and the CRM platform"""
    results = await asyncio.gather(
        check_database(),
        check_platform(),
        return_exceptions=True
    )

    services = {
        name: result if not isinstance(result, Exception) else {"status": "error", "message": str(result)}
        for name, result in zip(("database", "platform"), results)
    }

    statuses = [s.get("status", "unknown") for s in services.values()]
    if all(s in ["healthy", "unconfigured"] for s in statuses):
        overall_status = "healthy"
    elif any(s == "unhealthy" for s in statuses):
        overall_status = "unhealthy"
    else:
        overall_status = "degraded"

    return {
        "status": overall_status,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "services": services
    }
