"""
Base importer: transform one exported record and upsert it into the destination.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..categories import MigrationCategory
from ..domain import MigrationOptions
from ..errors import RecordConflictError
from ..providers.base import BaseCRMProvider
from ..retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Outcomes of a successful import
CREATED = "created"
UPDATED = "updated"
SKIPPED = "skipped"
CONVERTED = "converted"

MAX_ERROR_LOG = 200

# Platform-managed fields never sent back on create
READ_ONLY_FIELDS = ("id", "_id", "locationId", "dateAdded", "dateUpdated", "createdAt", "updatedAt")


def record_name(record: Dict[str, Any]) -> str:
    """Best human-readable label for a record"""
    for key in ("name", "title", "email"):
        if record.get(key):
            return str(record[key])
    full_name = f"{record.get('firstName') or ''} {record.get('lastName') or ''}".strip()
    return full_name or str(record.get("id", "unknown"))


class IdMap:
    """Source id -> destination id, per namespace (usually a category)"""

    def __init__(self):
        self._maps: Dict[str, Dict[str, str]] = defaultdict(dict)

    def record(self, namespace: str, source_id: Optional[str], destination_id: Optional[str]):
        if source_id and destination_id:
            self._maps[str(namespace)][str(source_id)] = str(destination_id)

    def get(self, namespace: str, source_id: Optional[str]) -> Optional[str]:
        if not source_id:
            return None
        return self._maps.get(str(namespace), {}).get(str(source_id))

    def count(self, namespace: str) -> int:
        return len(self._maps.get(str(namespace), {}))


class TransferContext:
    """State shared by the category transfers of one job"""

    def __init__(self):
        self.id_map = IdMap()
        self.artifacts: Dict[str, Any] = {}
        self.error_log: List[Dict[str, Any]] = []

    def log_error(self, category: MigrationCategory, record: Dict[str, Any], error: str):
        if len(self.error_log) >= MAX_ERROR_LOG:
            return
        self.error_log.append({
            "category": category.value,
            "sourceId": record.get("id"),
            "name": record_name(record),
            "error": error,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        })


class BaseImporter:
    """
    Upsert records of one category.

    A 409 on a category keyed by name is a legitimate duplicate: it is
    overwritten when overwrite_existing is set and skipped otherwise. Set
    conflicts_are_duplicates to False where a conflict means a bad record.
    """

    category: MigrationCategory
    conflicts_are_duplicates = True

    def __init__(
        self,
        source: BaseCRMProvider,
        destination: BaseCRMProvider,
        options: MigrationOptions,
        context: TransferContext,
        retry: RetryPolicy,
    ):
        self.source = source
        self.destination = destination
        self.options = options
        self.context = context
        self.retry = retry

    async def _call(self, operation: Callable[[], Awaitable[T]], action: str) -> T:
        return await self.retry.call(operation, f"{action} {self.category.label}")

    def transform(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in record.items() if k not in READ_ONLY_FIELDS}

    async def prepare(self, record: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for extra source reads before the write"""
        return payload

    async def after_import(self, record: Dict[str, Any], destination_id: Optional[str], outcome: str):
        """Hook for dependent writes once the record exists in the destination"""
        pass

    def remember(self, record: Dict[str, Any], destination: Dict[str, Any]):
        self.context.id_map.record(self.category.value, record.get("id"), destination.get("id"))

    async def import_record(self, record: Dict[str, Any]) -> str:
        payload = await self.prepare(record, self.transform(record))

        try:
            created = await self._call(lambda: self.destination.create(self.category, payload), "Create")
        except RecordConflictError as e:
            if not self.conflicts_are_duplicates:
                raise
            return await self._resolve_duplicate(record, payload, e)

        self.remember(record, created)
        await self.after_import(record, created.get("id"), CREATED)
        return CREATED

    async def _resolve_duplicate(self, record: Dict[str, Any], payload: Dict[str, Any], error: RecordConflictError) -> str:
        existing_id = error.existing_id
        if existing_id and self.options.overwrite_existing:
            updated = await self._call(
                lambda: self.destination.update(self.category, existing_id, payload), "Update"
            )
            self.remember(record, {**record, **updated, "id": existing_id})
            await self.after_import(record, existing_id, UPDATED)
            return UPDATED

        logger.debug(f"{self.category.label} '{record_name(record)}' already exists, skipping")
        self.remember(record, {**record, "id": existing_id})
        return SKIPPED
