"""
Tenant Migration - Migration API
Validate, analyze, start, poll, cancel and back up location migrations.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.config import settings
from core.logging import get_logger
from services.migration.analyzer import SourceAnalyzer, source_analyzer
from services.migration.backup import BackupExporter, backup_exporter
from services.migration.domain import AccountCredentials, MigrationOptions
from services.migration.errors import (
    AccountAccessError,
    JobConflictError,
    PlanningError,
    PlatformUnreachableError,
)
from services.migration.history import HistoryService, history_service
from services.migration.importers import WORKFLOW_PROMPTS
from services.migration.job_store import JobSnapshot
from services.migration.orchestrator import MigrationOrchestrator, migration_orchestrator
from services.migration.validator import MALFORMED, CredentialValidator, credential_validator

logger = get_logger("tenant_migration.api.migration")

router = APIRouter(prefix="/migration", tags=["Migration"])


# ==================== REQUEST/RESPONSE MODELS ====================

class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountCredentialsIn(CamelModel):
    """Platform credentials for one location; never echoed back"""
    api_key: str = ""
    tenant_id: str = ""

    def to_domain(self) -> AccountCredentials:
        return AccountCredentials(api_key=self.api_key.strip(), tenant_id=self.tenant_id.strip())


class MigrationOptionsIn(CamelModel):
    categories: List[str] = Field(default_factory=list)
    include_historical_appointments: bool = False
    include_form_submissions: bool = False
    include_conversation_history: bool = False
    merge_duplicate_contacts: bool = True
    overwrite_existing: bool = False


class ValidateRequest(CamelModel):
    source_account: AccountCredentialsIn
    destination_account: AccountCredentialsIn


class AnalyzeRequest(CamelModel):
    source_account: AccountCredentialsIn
    previous_counts: Optional[Dict[str, int]] = None


class StartMigrationRequest(CamelModel):
    source_account: AccountCredentialsIn
    destination_account: AccountCredentialsIn
    options: MigrationOptionsIn
    data_counts: Dict[str, int] = Field(default_factory=dict)
    source_location_name: Optional[str] = None
    destination_location_name: Optional[str] = None


class ExportRequest(CamelModel):
    source_account: AccountCredentialsIn


class AccountCheckResponse(CamelModel):
    is_valid: bool
    location_name: Optional[str] = None
    error: Optional[str] = None


class ValidationResponse(CamelModel):
    is_valid: bool
    source_account: AccountCheckResponse
    destination_account: AccountCheckResponse
    warnings: List[str] = []


class AnalysisResponse(CamelModel):
    data_counts: Dict[str, int]
    estimated_duration: int
    warnings: List[str] = []


class StartMigrationResponse(CamelModel):
    job_id: str
    status: str
    poll_interval: int


class CategoryProgressResponse(CamelModel):
    total: int
    processed: int
    successful: int
    failed: int
    status: str
    errors: List[str] = []


class JobProgressResponse(CamelModel):
    overall: int
    current_operation: str
    current_category: Optional[str] = None
    categories: Dict[str, CategoryProgressResponse]


class AccountRefResponse(CamelModel):
    """Which location a job reads from or writes to"""
    tenant_id: str
    location_name: Optional[str] = None


class MigrationJobResponse(CamelModel):
    id: str
    status: str
    source_account: AccountRefResponse
    destination_account: AccountRefResponse
    options: Dict[str, Any]
    progress: JobProgressResponse
    error: Optional[str] = None
    error_log: List[Dict[str, Any]] = []
    workflow_prompts: List[Dict[str, Any]] = []
    cancel_requested: bool = False
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_snapshot(cls, job: JobSnapshot) -> "MigrationJobResponse":
        return cls(
            id=job.id,
            status=job.status,
            source_account=AccountRefResponse(
                tenant_id=job.source_tenant_id, location_name=job.source_location_name
            ),
            destination_account=AccountRefResponse(
                tenant_id=job.destination_tenant_id, location_name=job.destination_location_name
            ),
            options=job.options,
            progress=JobProgressResponse(
                overall=job.overall,
                current_operation=job.current_operation,
                current_category=job.current_category,
                categories={
                    name: CategoryProgressResponse(**progress.to_dict())
                    for name, progress in job.categories.items()
                },
            ),
            error=job.error,
            error_log=job.error_log,
            workflow_prompts=job.artifacts.get(WORKFLOW_PROMPTS, []),
            cancel_requested=job.cancel_requested,
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class CategorySummaryResponse(CamelModel):
    total: int
    successful: int
    failed: int
    status: str


class JobTotalsResponse(CamelModel):
    total: int
    successful: int
    failed: int


class JobSummaryResponse(CamelModel):
    id: str
    status: str
    source_tenant_id: str
    destination_tenant_id: str
    source_location_name: Optional[str] = None
    destination_location_name: Optional[str] = None
    overall: int
    error: Optional[str] = None
    categories: Dict[str, CategorySummaryResponse]
    totals: JobTotalsResponse
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class CancelResponse(CamelModel):
    job_id: str
    cancel_requested: bool


# ==================== DEPENDENCIES ====================

def get_orchestrator() -> MigrationOrchestrator:
    return migration_orchestrator


def get_validator() -> CredentialValidator:
    return credential_validator


def get_analyzer() -> SourceAnalyzer:
    return source_analyzer


def get_history_service() -> HistoryService:
    return history_service


def get_backup_exporter() -> BackupExporter:
    return backup_exporter


def require_credentials(credentials: AccountCredentialsIn, side: str) -> AccountCredentials:
    domain = credentials.to_domain()
    if not domain.is_well_formed:
        raise HTTPException(status_code=400, detail=f"{side} account: {MALFORMED}")
    return domain


# ==================== ENDPOINTS ====================

@router.post("/validate", response_model=ValidationResponse)
async def validate_accounts(
    request: ValidateRequest,
    validator: CredentialValidator = Depends(get_validator),
):
    """
    Check that both locations are reachable with their API keys.
    Failures are reported per account, never as an HTTP error.
    """
    result = await validator.validate(
        request.source_account.to_domain(),
        request.destination_account.to_domain(),
    )
    return ValidationResponse(
        is_valid=result.is_valid,
        source_account=AccountCheckResponse(**result.source_account.to_dict()),
        destination_account=AccountCheckResponse(**result.destination_account.to_dict()),
        warnings=result.warnings,
    )


@router.post("/analyze", response_model=AnalysisResponse)
async def analyze_source(
    request: AnalyzeRequest,
    analyzer: SourceAnalyzer = Depends(get_analyzer),
):
    """Count records per category in the source and estimate duration in minutes"""
    source = require_credentials(request.source_account, "Source")
    result = await analyzer.analyze(source, previous_counts=request.previous_counts)
    return AnalysisResponse(
        data_counts=result.counts_by_name(),
        estimated_duration=result.estimated_duration,
        warnings=result.warnings,
    )


@router.post("/start", response_model=StartMigrationResponse)
async def start_migration(
    request: StartMigrationRequest,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    """
    Start a migration job in the background.
    Poll GET /migration/jobs/{job_id} every pollInterval seconds for progress.
    """
    source = require_credentials(request.source_account, "Source")
    destination = require_credentials(request.destination_account, "Destination")

    try:
        options = MigrationOptions.from_dict(request.options.model_dump(by_alias=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Unknown migration category: {e}")

    try:
        job = await orchestrator.start_migration(
            source,
            destination,
            options,
            data_counts=request.data_counts,
            source_location_name=request.source_location_name,
            destination_location_name=request.destination_location_name,
        )
    except PlanningError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except JobConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(f"Migration job {job.id} started", job_id=job.id, tenant_id=destination.tenant_id)
    return StartMigrationResponse(
        job_id=job.id,
        status=job.status,
        poll_interval=settings.STATUS_POLL_INTERVAL_SECONDS,
    )


@router.get("/jobs/{job_id}", response_model=MigrationJobResponse)
async def get_job_status(
    job_id: str,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    """Current job state, as last persisted by the executor"""
    job = await orchestrator.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return MigrationJobResponse.from_snapshot(job)


@router.delete("/jobs/{job_id}", response_model=CancelResponse)
async def cancel_job(
    job_id: str,
    orchestrator: MigrationOrchestrator = Depends(get_orchestrator),
):
    """Request cancellation; already migrated data is kept"""
    job = await orchestrator.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")

    if not await orchestrator.cancel_job(job_id):
        raise HTTPException(status_code=400, detail="Job is not running")

    return CancelResponse(job_id=job_id, cancel_requested=True)


@router.get("/history", response_model=List[JobSummaryResponse])
async def get_history(
    limit: Optional[int] = None,
    history: HistoryService = Depends(get_history_service),
):
    """Recent migration jobs, newest first"""
    if limit is not None:
        limit = max(1, min(limit, 100))
    return [JobSummaryResponse.model_validate(item) for item in await history.list_recent(limit)]


@router.post("/export")
async def export_backup(
    request: ExportRequest,
    exporter: BackupExporter = Depends(get_backup_exporter),
):
    """
    Full JSON backup of the source location.
    Read-only; creates no job.
    """
    source = require_credentials(request.source_account, "Source")

    try:
        snapshot = await exporter.export(source)
    except PlatformUnreachableError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except AccountAccessError as e:
        raise HTTPException(status_code=400, detail=str(e))

    filename = f"migration-backup-{source.tenant_id}-{datetime.utcnow():%Y-%m-%d}.json"
    return JSONResponse(
        content=snapshot,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
