"""
Migration orchestrator.
Owns the job lifecycle: validates, runs category transfers in planner order,
persists progress after every batch and honours cancellation.
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from core.logging import get_logger, log_job_event
from core.sentry import capture_exception

from .categories import MigrationCategory
from .domain import (
    CANCELLED,
    CATEGORY_FAILED,
    CATEGORY_PENDING,
    CATEGORY_RUNNING,
    COMPLETED,
    EXPORTING,
    FAILED,
    IMPORTING,
    VALIDATING,
    AccountCredentials,
    CategoryProgress,
    MigrationOptions,
    compute_overall,
)
from .errors import AccountAccessError, JobConflictError
from .importers import TransferContext
from .job_store import JobProgressWriter, JobSnapshot, JobStore, job_store
from .planner import plan_categories
from .providers import BaseCRMProvider, ProviderFactory, default_provider_factory
from .transfer import CancelToken, CategoryTransferUnit
from .validator import CredentialValidator

logger = get_logger("tenant_migration.orchestrator")

RESTART_NOTE = "Interrupted by service restart"
SHUTDOWN_NOTE = "Interrupted by service shutdown"


def describe(status: str, category: MigrationCategory, progress: CategoryProgress) -> str:
    """Operator-facing line such as 'Importing opportunities: 120/400'"""
    if status == EXPORTING and progress.processed == 0:
        return f"Exporting {category.label}"
    return f"Importing {category.label}: {progress.processed}/{progress.total}"


class _JobRun:
    """In-memory aggregate for one running job; only the executor touches it"""

    def __init__(self, job_id: str, writer: JobProgressWriter, categories: Dict[str, CategoryProgress]):
        self.job_id = job_id
        self.writer = writer
        self.categories = categories
        self.context = TransferContext()
        self.status = VALIDATING
        self.interrupted = False

    async def save(self, **changes):
        await self.writer.save(
            overall=compute_overall(self.categories),
            categories=self.categories,
            error_log=self.context.error_log,
            artifacts=self.context.artifacts,
            **changes,
        )

    def cut_short(self) -> bool:
        """True when cancellation left a category unstarted or interrupted"""
        return self.interrupted or any(
            progress.status == CATEGORY_PENDING for progress in self.categories.values()
        )

    def fail_running_categories(self, note: str):
        for progress in self.categories.values():
            if progress.status == CATEGORY_RUNNING:
                progress.add_error(note)
                progress.finish(CATEGORY_FAILED)


class MigrationOrchestrator:
    """Orchestrate migration jobs in background tasks"""

    def __init__(
        self,
        store: Optional[JobStore] = None,
        provider_factory: Optional[ProviderFactory] = None,
        validator: Optional[CredentialValidator] = None,
        transfer_unit: Optional[CategoryTransferUnit] = None,
    ):
        self.store = store or job_store
        self.provider_factory = provider_factory or default_provider_factory
        self.validator = validator or CredentialValidator(self.provider_factory)
        self.transfer_unit = transfer_unit or CategoryTransferUnit()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancel_tokens: Dict[str, CancelToken] = {}
        self._start_lock = asyncio.Lock()

    # ==================== Job start ====================

    async def start_migration(
        self,
        source: AccountCredentials,
        destination: AccountCredentials,
        options: MigrationOptions,
        data_counts: Optional[Mapping[str, int]] = None,
        source_location_name: Optional[str] = None,
        destination_location_name: Optional[str] = None,
    ) -> JobSnapshot:
        """
        Create a job and run it in the background.

        Raises:
            PlanningError: empty or unknown category selection.
            JobConflictError: another unfinished job targets the same destination.
        """
        order = plan_categories(options.categories, options)
        data_counts = data_counts or {}

        async with self._start_lock:
            active_job_id = await self.store.find_active_job_for_destination(destination.tenant_id)
            if active_job_id:
                raise JobConflictError(
                    f"Destination location already has a migration in progress ({active_job_id})",
                    active_job_id=active_job_id,
                )

            source_ref = await self.store.create_connection(source, source_location_name)
            destination_ref = await self.store.create_connection(destination, destination_location_name)
            categories = {
                category.value: CategoryProgress(total=max(int(data_counts.get(category.value, 0)), 0))
                for category in order
            }
            job = await self.store.create_job(
                source_connection_id=source_ref,
                destination_connection_id=destination_ref,
                source_tenant_id=source.tenant_id,
                destination_tenant_id=destination.tenant_id,
                options=options,
                categories=categories,
                source_location_name=source_location_name,
                destination_location_name=destination_location_name,
            )

        token = CancelToken()
        run = _JobRun(job.id, self.store.progress_writer(job.id), categories)
        self._cancel_tokens[job.id] = token
        task = asyncio.create_task(self._run_migration(run, job, order, options, token))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._forget(job.id))

        log_job_event(
            "created",
            job_id=job.id,
            tenant_id=destination.tenant_id,
            categories=[c.value for c in order],
        )
        return job

    def _forget(self, job_id: str):
        self._tasks.pop(job_id, None)
        self._cancel_tokens.pop(job_id, None)

    # ==================== Execution ====================

    async def _run_migration(
        self,
        run: _JobRun,
        job: JobSnapshot,
        order: List[MigrationCategory],
        options: MigrationOptions,
        token: CancelToken,
    ):
        """Background migration task"""
        source_provider: Optional[BaseCRMProvider] = None
        destination_provider: Optional[BaseCRMProvider] = None

        try:
            await run.save(
                status=VALIDATING,
                current_operation="Validating accounts",
                started_at=datetime.utcnow(),
            )

            source = await self.store.load_credentials(job.source_connection_id)
            destination = await self.store.load_credentials(job.destination_connection_id)
            validation = await self.validator.validate(source, destination)
            if not validation.is_valid:
                problems = []
                if not validation.source_account.is_valid:
                    problems.append(f"Source account: {validation.source_account.error}")
                if not validation.destination_account.is_valid:
                    problems.append(f"Destination account: {validation.destination_account.error}")
                await self._finish(run, FAILED, "Account validation failed", error="; ".join(problems))
                return

            run.status = EXPORTING
            await run.save(status=EXPORTING, current_operation="Exporting data")

            source_provider = self.provider_factory(source)
            destination_provider = self.provider_factory(destination)

            async def on_progress(category: MigrationCategory, progress: CategoryProgress):
                if run.status == EXPORTING and progress.processed > 0:
                    run.status = IMPORTING
                if not token.is_cancelled and await self.store.is_cancel_requested(run.job_id):
                    token.cancel()
                await run.save(
                    status=run.status,
                    current_category=category.value,
                    current_operation=describe(run.status, category, progress),
                )

            for category in order:
                if token.is_cancelled or await self.store.is_cancel_requested(run.job_id):
                    token.cancel()
                    break

                progress = run.categories[category.value]
                await self.transfer_unit.transfer(
                    category,
                    source_provider,
                    destination_provider,
                    options,
                    token,
                    progress,
                    context=run.context,
                    on_progress=on_progress,
                )
                if token.is_cancelled and progress.status == CATEGORY_FAILED:
                    run.interrupted = True
                logger.info(
                    f"Category {category.value} {progress.status}: "
                    f"{progress.successful} ok, {progress.failed} failed of {progress.total}",
                    job_id=run.job_id,
                    category=category.value,
                )
                await run.save(
                    status=run.status,
                    current_category=category.value,
                    current_operation=describe(run.status, category, progress),
                )

            if token.is_cancelled and run.cut_short():
                await self._finish(run, CANCELLED, "Migration cancelled")
            else:
                await self._finish(run, COMPLETED, "Migration completed")

        except AccountAccessError as e:
            run.fail_running_categories(str(e))
            await self._finish(run, FAILED, f"Failed: {e}", error=str(e))

        except asyncio.CancelledError:
            run.fail_running_categories(SHUTDOWN_NOTE)
            await self._finish(run, FAILED, SHUTDOWN_NOTE, error=SHUTDOWN_NOTE)
            raise

        except Exception as e:
            logger.exception(f"Migration job {run.job_id} failed: {e}", job_id=run.job_id)
            capture_exception(e, job_id=run.job_id)
            run.fail_running_categories(str(e))
            await self._finish(run, FAILED, f"Error: {e}", error=str(e) or e.__class__.__name__)

        finally:
            for provider in (source_provider, destination_provider):
                if provider is not None:
                    await provider.close()
            run.writer.release()

    async def _finish(self, run: _JobRun, status: str, operation: str, error: Optional[str] = None):
        run.status = status
        await run.save(
            status=status,
            current_operation=operation,
            error=error,
            completed_at=datetime.utcnow(),
        )
        log_job_event(
            status,
            job_id=run.job_id,
            description=f"Migration job {run.job_id} {status}" + (f": {error}" if error else ""),
            overall=compute_overall(run.categories),
        )

    # ==================== Control ====================

    async def cancel_job(self, job_id: str) -> bool:
        """Request cancellation; False when the job is unknown or already finished"""
        requested = await self.store.request_cancel(job_id)
        if requested:
            token = self._cancel_tokens.get(job_id)
            if token is not None:
                token.cancel()
            log_job_event("cancel_requested", job_id=job_id)
        return requested

    async def get_job(self, job_id: str) -> Optional[JobSnapshot]:
        return await self.store.get_job(job_id)

    async def wait_for(self, job_id: str, timeout: Optional[float] = None):
        """Block until the job's background task has finished"""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._tasks

    async def recover_interrupted_jobs(self) -> int:
        """Mark jobs left unfinished by a previous process as failed"""
        recovered = 0
        for job in await self.store.list_unfinished():
            if job.id in self._tasks:
                continue
            run = _JobRun(job.id, self.store.progress_writer(job.id), job.categories)
            run.fail_running_categories(RESTART_NOTE)
            await self._finish(run, FAILED, RESTART_NOTE, error=RESTART_NOTE)
            recovered += 1
        if recovered:
            logger.warning(f"Marked {recovered} interrupted migration job(s) as failed")
        return recovered

    async def shutdown(self, timeout: float = 10.0):
        """Stop background jobs; each is finalized as failed"""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)


migration_orchestrator = MigrationOrchestrator()
