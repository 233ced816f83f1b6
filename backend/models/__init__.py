"""
Tenant Migration - Database Models
"""
from .migration_models import AccountConnection, MigrationJob

__all__ = [
    "AccountConnection",
    "MigrationJob",
]
