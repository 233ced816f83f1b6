"""
Value objects shared by the migration engine.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional

from .categories import CATALOG, CATALOG_INDEX, MigrationCategory, parse_categories

# Job status values
PENDING = "pending"
VALIDATING = "validating"
EXPORTING = "exporting"
IMPORTING = "importing"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

TERMINAL_STATUSES = frozenset({COMPLETED, FAILED, CANCELLED})
ACTIVE_STATUSES = frozenset({PENDING, VALIDATING, EXPORTING, IMPORTING})

# Category status values
CATEGORY_PENDING = "pending"
CATEGORY_RUNNING = "running"
CATEGORY_COMPLETED = "completed"
CATEGORY_FAILED = "failed"

MAX_CATEGORY_ERRORS = 20


@dataclass(frozen=True)
class AccountCredentials:
    """API key plus location id for one tenant. The key never appears in repr."""
    api_key: str = field(repr=False)
    tenant_id: str

    @property
    def is_well_formed(self) -> bool:
        return bool(self.api_key and self.api_key.strip() and self.tenant_id and self.tenant_id.strip())


@dataclass(frozen=True)
class MigrationOptions:
    """Operator choices for one job. Frozen once the job is created."""
    categories: FrozenSet[MigrationCategory] = frozenset()
    include_historical_appointments: bool = False
    include_form_submissions: bool = False
    include_conversation_history: bool = False
    merge_duplicate_contacts: bool = True
    overwrite_existing: bool = False

    def to_dict(self) -> dict:
        return {
            "categories": [c.value for c in sorted(self.categories, key=CATALOG_INDEX.__getitem__)],
            "includeHistoricalAppointments": self.include_historical_appointments,
            "includeFormSubmissions": self.include_form_submissions,
            "includeConversationHistory": self.include_conversation_history,
            "mergeDuplicateContacts": self.merge_duplicate_contacts,
            "overwriteExisting": self.overwrite_existing,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "MigrationOptions":
        return cls(
            categories=frozenset(parse_categories(data.get("categories", []))),
            include_historical_appointments=bool(data.get("includeHistoricalAppointments", False)),
            include_form_submissions=bool(data.get("includeFormSubmissions", False)),
            include_conversation_history=bool(data.get("includeConversationHistory", False)),
            merge_duplicate_contacts=bool(data.get("mergeDuplicateContacts", True)),
            overwrite_existing=bool(data.get("overwriteExisting", False)),
        )


@dataclass
class CategoryProgress:
    """
    Counters for one category of one job.

    processed == successful + failed and processed <= total hold after every
    mutation; all counters only grow.
    """
    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    status: str = CATEGORY_PENDING
    errors: List[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in (CATEGORY_COMPLETED, CATEGORY_FAILED)

    def start(self):
        self.status = CATEGORY_RUNNING

    def grow_total(self, total: int):
        """Raise the announced total when the source holds more than analyzed"""
        if total > self.total:
            self.total = total

    def record_success(self):
        self.grow_total(self.processed + 1)
        self.processed += 1
        self.successful += 1

    def record_failure(self, message: str):
        self.grow_total(self.processed + 1)
        self.processed += 1
        self.failed += 1
        self.add_error(message)

    def add_error(self, message: str):
        if len(self.errors) < MAX_CATEGORY_ERRORS:
            self.errors.append(message)

    def finish(self, status: str):
        self.status = status

    def completion(self) -> float:
        """Fraction of this category that is done, in [0, 1]"""
        if self.status == CATEGORY_COMPLETED:
            return 1.0
        if self.total <= 0:
            return 0.0
        return min(self.processed / self.total, 1.0)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "status": self.status,
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "CategoryProgress":
        return cls(
            total=int(data.get("total", 0)),
            processed=int(data.get("processed", 0)),
            successful=int(data.get("successful", 0)),
            failed=int(data.get("failed", 0)),
            status=data.get("status", CATEGORY_PENDING),
            errors=list(data.get("errors", [])),
        )


def compute_overall(categories: Mapping[str, CategoryProgress]) -> int:
    """
    Overall job completion 0-100.

    Weighted average of per-category completion, each category weighted by its
    total record count. When no category has records the job is either fully
    done (every category completed) or not started.
    """
    if not categories:
        return 0
    weight = sum(max(p.total, 0) for p in categories.values())
    if weight == 0:
        done = all(p.status == CATEGORY_COMPLETED for p in categories.values())
        return 100 if done else 0
    achieved = sum(max(p.total, 0) * p.completion() for p in categories.values())
    return min(100, int(math.floor(achieved * 100 / weight)))


@dataclass
class AccountCheck:
    """Validation outcome for one side of the pair"""
    is_valid: bool
    location_name: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"isValid": self.is_valid}
        if self.location_name is not None:
            data["locationName"] = self.location_name
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ValidationResult:
    source_account: AccountCheck
    destination_account: AccountCheck
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.source_account.is_valid and self.destination_account.is_valid


@dataclass
class AnalysisResult:
    data_counts: Dict[MigrationCategory, int]
    estimated_duration: int  # minutes
    warnings: List[str] = field(default_factory=list)

    def counts_by_name(self) -> Dict[str, int]:
        return {c.value: self.data_counts.get(c, 0) for c in CATALOG}
