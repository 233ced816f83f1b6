"""
Base provider interface for CRM platform accounts.
A provider is bound to one set of credentials (one tenant).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from ..categories import MigrationCategory


@dataclass
class LocationInfo:
    """Tenant identity returned by the reachability probe"""
    id: str
    name: str


@dataclass
class Page:
    """One page of an exported category"""
    items: List[Dict[str, Any]] = field(default_factory=list)
    total: Optional[int] = None
    has_more: bool = False


class BaseCRMProvider(ABC):
    """Abstract base class for platform accounts used as source or destination"""

    tenant_id: str

    @abstractmethod
    async def get_location(self) -> LocationInfo:
        """Read the tenant record; doubles as the credential probe"""
        pass

    @abstractmethod
    async def count(self, category: MigrationCategory) -> int:
        """Number of records the tenant holds for a category"""
        pass

    @abstractmethod
    async def list_page(self, category: MigrationCategory, skip: int, limit: int) -> Page:
        """Fetch one page of records for a category"""
        pass

    @abstractmethod
    async def create(self, category: MigrationCategory, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a record and return it as stored by the platform"""
        pass

    @abstractmethod
    async def update(self, category: MigrationCategory, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite an existing record"""
        pass

    @abstractmethod
    async def find_contact_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Look up a contact for duplicate matching"""
        pass

    @abstractmethod
    async def list_contact_notes(self, contact_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def create_contact_note(self, contact_id: str, body: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def list_form_submissions(self, form_id: str) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def close(self):
        """Release the HTTP session"""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
