# Migration service for copying a CRM location into another location
# Validator -> analyzer -> planner -> orchestrator (transfer units) -> job store

from .analyzer import SourceAnalyzer
from .backup import BackupExporter
from .categories import CATALOG, DEPENDENCIES, MigrationCategory
from .domain import (
    AccountCredentials,
    AnalysisResult,
    CategoryProgress,
    MigrationOptions,
    ValidationResult,
    compute_overall,
)
from .history import HistoryService, history_service
from .job_store import JobSnapshot, JobStore, job_store
from .orchestrator import MigrationOrchestrator, migration_orchestrator
from .planner import plan_categories
from .transfer import CancelToken, CategoryTransferUnit
from .validator import CredentialValidator

__all__ = [
    "SourceAnalyzer",
    "BackupExporter",
    "CATALOG",
    "DEPENDENCIES",
    "MigrationCategory",
    "AccountCredentials",
    "AnalysisResult",
    "CategoryProgress",
    "MigrationOptions",
    "ValidationResult",
    "compute_overall",
    "HistoryService",
    "history_service",
    "JobSnapshot",
    "JobStore",
    "job_store",
    "MigrationOrchestrator",
    "migration_orchestrator",
    "plan_categories",
    "CancelToken",
    "CategoryTransferUnit",
    "CredentialValidator",
]
