"""
Tenant Migration - CRM location copy service
Validate | Analyze | Migrate | Backup
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import os
import time
from dotenv import load_dotenv

load_dotenv()

# Setup structured logging
from core.logging import setup_logging, get_logger, log_request

setup_logging(
    level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=os.getenv("LOG_FORMAT", "json") == "json"
)

logger = get_logger("tenant_migration.main")

from core.sentry import init_sentry

init_sentry()

from api.health import router as health_router
from api.migration import router as migration_router
from services.migration.orchestrator import migration_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Tenant migration service starting...", action="app_startup")
    if os.getenv("TESTING") != "true":
        await migration_orchestrator.recover_interrupted_jobs()
    yield
    logger.info("Tenant migration service shutting down...", action="app_shutdown")
    await migration_orchestrator.shutdown()

app = FastAPI(
    title="Tenant Migration",
    description="Copy configuration and records from one CRM location into another",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    # Skip logging for health checks and status polling
    if request.url.path == "/health" or "/migration/jobs/" in request.url.path:
        return await call_next(request)

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    if request.url.path.startswith("/api/"):
        await log_request(
            request=request,
            response_status=response.status_code,
            duration_ms=duration_ms
        )

    return response


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "tenant-migration"}

@app.get("/api/v1")
async def api_info():
    return {
        "version": "v1",
        "endpoints": {
            "migration": "/api/v1/migration",
            "health": "/api/v1/health"
        }
    }

app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(migration_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8500")))
