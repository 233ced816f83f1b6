"""
Job store.
Durable job records: append-only create, reads for pollers and history, and a
single progress writer per job owned by the executor.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.database import AsyncSessionLocal
from models.migration_models import AccountConnection, MigrationJob

from .domain import (
    ACTIVE_STATUSES,
    AccountCredentials,
    CategoryProgress,
    MigrationOptions,
    PENDING,
    TERMINAL_STATUSES,
)
from .vault import CredentialVault, credential_vault

logger = logging.getLogger(__name__)


@dataclass
class JobSnapshot:
    """Read-only view of a stored job"""
    id: str
    status: str
    source_tenant_id: str
    destination_tenant_id: str
    source_location_name: Optional[str]
    destination_location_name: Optional[str]
    source_connection_id: str
    destination_connection_id: str
    options: Dict[str, Any]
    overall: int
    current_operation: str
    current_category: Optional[str]
    categories: Dict[str, CategoryProgress]
    error: Optional[str]
    error_log: List[Dict[str, Any]]
    artifacts: Dict[str, Any]
    cancel_requested: bool
    created_at: Optional[datetime]
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_row(cls, job: MigrationJob) -> "JobSnapshot":
        return cls(
            id=job.id,
            status=job.status,
            source_tenant_id=job.source_tenant_id,
            destination_tenant_id=job.destination_tenant_id,
            source_location_name=job.source_location_name,
            destination_location_name=job.destination_location_name,
            source_connection_id=job.source_connection_id,
            destination_connection_id=job.destination_connection_id,
            options=dict(job.options or {}),
            overall=job.progress_overall or 0,
            current_operation=job.current_operation or "",
            current_category=job.current_category,
            categories={
                name: CategoryProgress.from_dict(data)
                for name, data in (job.categories or {}).items()
            },
            error=job.error,
            error_log=list(job.error_log or []),
            artifacts=dict(job.artifacts or {}),
            cancel_requested=bool(job.cancel_requested),
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class JobProgressWriter:
    """
    The only path that mutates a job's status and progress.
    Each save commits in its own session so the next poll sees it.
    """

    def __init__(self, store: "JobStore", job_id: str):
        self._store = store
        self.job_id = job_id
        self._closed = False

    async def save(
        self,
        status: Optional[str] = None,
        overall: Optional[int] = None,
        current_operation: Optional[str] = None,
        current_category: Optional[str] = None,
        categories: Optional[Dict[str, CategoryProgress]] = None,
        error: Optional[str] = None,
        error_log: Optional[List[Dict[str, Any]]] = None,
        artifacts: Optional[Dict[str, Any]] = None,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ):
        if self._closed:
            raise RuntimeError(f"Job {self.job_id} is terminal; progress is read-only")

        values: Dict[str, Any] = {}
        if status is not None:
            values["status"] = status
        if overall is not None:
            values["progress_overall"] = overall
        if current_operation is not None:
            values["current_operation"] = current_operation[:255]
        if current_category is not None:
            values["current_category"] = current_category
        if categories is not None:
            values["categories"] = {name: p.to_dict() for name, p in categories.items()}
        if error is not None:
            values["error"] = error
        if error_log is not None:
            values["error_log"] = list(error_log)
        if artifacts is not None:
            values["artifacts"] = dict(artifacts)
        if started_at is not None:
            values["started_at"] = started_at
        if completed_at is not None:
            values["completed_at"] = completed_at

        async with self._store.session_factory() as session:
            job = await session.get(MigrationJob, self.job_id)
            if job is None:
                raise LookupError(f"Job {self.job_id} not found")
            if job.status in TERMINAL_STATUSES:
                raise RuntimeError(f"Job {self.job_id} is terminal; progress is read-only")
            for key, value in values.items():
                setattr(job, key, value)
            job.updated_at = datetime.utcnow()
            await session.commit()

        if status in TERMINAL_STATUSES:
            self.release()

    def release(self):
        if not self._closed:
            self._closed = True
            self._store._release_writer(self.job_id)


class JobStore:
    """Durable store for migration jobs and their encrypted credentials"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        vault: Optional[CredentialVault] = None,
    ):
        self.session_factory = session_factory
        self.vault = vault or credential_vault
        self._writers: Set[str] = set()

    # ==================== Credentials ====================

    async def create_connection(self, credentials: AccountCredentials, location_name: Optional[str] = None) -> str:
        """Store credentials encrypted and return the reference id"""
        connection = AccountConnection(
            id=str(uuid4()),
            tenant_id=credentials.tenant_id,
            location_name=location_name,
            api_key_encrypted=self.vault.encrypt(credentials.api_key),
        )
        async with self.session_factory() as session:
            session.add(connection)
            await session.commit()
        return connection.id

    async def load_credentials(self, connection_id: str) -> AccountCredentials:
        async with self.session_factory() as session:
            connection = await session.get(AccountConnection, connection_id)
        if connection is None:
            raise LookupError(f"Account connection {connection_id} not found")
        return AccountCredentials(
            api_key=self.vault.decrypt(connection.api_key_encrypted),
            tenant_id=connection.tenant_id,
        )

    # ==================== Jobs ====================

    async def create_job(
        self,
        source_connection_id: str,
        destination_connection_id: str,
        source_tenant_id: str,
        destination_tenant_id: str,
        options: MigrationOptions,
        categories: Dict[str, CategoryProgress],
        source_location_name: Optional[str] = None,
        destination_location_name: Optional[str] = None,
    ) -> JobSnapshot:
        job = MigrationJob(
            id=str(uuid4()),
            source_connection_id=source_connection_id,
            destination_connection_id=destination_connection_id,
            source_tenant_id=source_tenant_id,
            destination_tenant_id=destination_tenant_id,
            source_location_name=source_location_name,
            destination_location_name=destination_location_name,
            options=options.to_dict(),
            status=PENDING,
            progress_overall=0,
            current_operation="Queued",
            categories={name: p.to_dict() for name, p in categories.items()},
            error_log=[],
            artifacts={},
            cancel_requested=False,
            created_at=datetime.utcnow(),
        )
        async with self.session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
        logger.info(f"Created migration job {job.id}: {source_tenant_id} -> {destination_tenant_id}")
        return JobSnapshot.from_row(job)

    async def get_job(self, job_id: str) -> Optional[JobSnapshot]:
        async with self.session_factory() as session:
            job = await session.get(MigrationJob, job_id)
            return JobSnapshot.from_row(job) if job else None

    async def list_jobs(self, limit: int = 20) -> List[JobSnapshot]:
        """Most recent jobs first"""
        async with self.session_factory() as session:
            result = await session.execute(
                select(MigrationJob).order_by(MigrationJob.created_at.desc()).limit(limit)
            )
            return [JobSnapshot.from_row(job) for job in result.scalars().all()]

    async def list_unfinished(self) -> List[JobSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MigrationJob).where(MigrationJob.status.in_(ACTIVE_STATUSES))
            )
            return [JobSnapshot.from_row(job) for job in result.scalars().all()]

    async def find_active_job_for_destination(self, destination_tenant_id: str) -> Optional[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MigrationJob.id)
                .where(MigrationJob.destination_tenant_id == destination_tenant_id)
                .where(MigrationJob.status.in_(ACTIVE_STATUSES))
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def request_cancel(self, job_id: str) -> bool:
        """Flag a running job for cancellation; False when unknown or already finished"""
        async with self.session_factory() as session:
            job = await session.get(MigrationJob, job_id)
            if job is None or job.status in TERMINAL_STATUSES:
                return False
            job.cancel_requested = True
            await session.commit()
            return True

    async def is_cancel_requested(self, job_id: str) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MigrationJob.cancel_requested).where(MigrationJob.id == job_id)
            )
            return bool(result.scalar_one_or_none())

    def progress_writer(self, job_id: str) -> JobProgressWriter:
        """Claim the single writer for a job"""
        if job_id in self._writers:
            raise RuntimeError(f"Job {job_id} already has an active progress writer")
        self._writers.add(job_id)
        return JobProgressWriter(self, job_id)

    def _release_writer(self, job_id: str):
        self._writers.discard(job_id)


job_store = JobStore()
