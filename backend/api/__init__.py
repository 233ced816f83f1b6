"""
Tenant Migration API Routers
"""
from .health import router as health_router
from .migration import router as migration_router

__all__ = [
    "health_router",
    "migration_router"
]
