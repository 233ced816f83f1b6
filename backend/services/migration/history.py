"""
Migration history: read-only projection over the job store.
"""

from typing import Any, Dict, List, Optional

from core.config import settings

from .job_store import JobSnapshot, JobStore, job_store


def summarize(job: JobSnapshot) -> Dict[str, Any]:
    """Status plus per-category and total counters for one job"""
    categories = {
        name: {
            "total": progress.total,
            "successful": progress.successful,
            "failed": progress.failed,
            "status": progress.status,
        }
        for name, progress in job.categories.items()
    }
    return {
        "id": job.id,
        "status": job.status,
        "sourceTenantId": job.source_tenant_id,
        "destinationTenantId": job.destination_tenant_id,
        "sourceLocationName": job.source_location_name,
        "destinationLocationName": job.destination_location_name,
        "overall": job.overall,
        "error": job.error,
        "categories": categories,
        "totals": {
            "total": sum(p.total for p in job.categories.values()),
            "successful": sum(p.successful for p in job.categories.values()),
            "failed": sum(p.failed for p in job.categories.values()),
        },
        "createdAt": job.created_at,
        "completedAt": job.completed_at,
    }


class HistoryService:
    """Recent jobs for operator review"""

    def __init__(self, store: Optional[JobStore] = None):
        self.store = store or job_store

    async def list_recent(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        jobs = await self.store.list_jobs(limit or settings.HISTORY_LIMIT)
        return [summarize(job) for job in jobs]


history_service = HistoryService()
