"""
HighLevel (LeadConnector) CRM provider.
Uses the v2 REST API with a location-scoped API key.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from core.config import settings

from ..categories import MigrationCategory
from ..domain import AccountCredentials
from ..errors import (
    AccountAccessError,
    RecordConflictError,
    RecordNotFoundError,
    RecordRejectedError,
    TransientPlatformError,
)
from ..retry import RateLimiter
from .base import BaseCRMProvider, LocationInfo, Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endpoint:
    list_path: str
    write_path: str
    list_key: str
    item_key: str


CATEGORY_ENDPOINTS: Dict[MigrationCategory, Endpoint] = {
    MigrationCategory.CONTACTS: Endpoint("/contacts/", "/contacts/", "contacts", "contact"),
    MigrationCategory.TAGS: Endpoint(
        "/locations/{location_id}/tags", "/locations/{location_id}/tags", "tags", "tag"
    ),
    MigrationCategory.CUSTOM_FIELDS: Endpoint(
        "/locations/{location_id}/customFields", "/locations/{location_id}/customFields",
        "customFields", "customField"
    ),
    MigrationCategory.PIPELINES: Endpoint(
        "/opportunities/pipelines", "/opportunities/pipelines", "pipelines", "pipeline"
    ),
    MigrationCategory.OPPORTUNITIES: Endpoint(
        "/opportunities/search", "/opportunities/", "opportunities", "opportunity"
    ),
    MigrationCategory.CALENDARS: Endpoint("/calendars/", "/calendars/", "calendars", "calendar"),
    MigrationCategory.APPOINTMENTS: Endpoint(
        "/calendars/events", "/calendars/events/appointments", "events", "event"
    ),
    MigrationCategory.FORMS: Endpoint("/forms/", "/forms/", "forms", "form"),
    MigrationCategory.SURVEYS: Endpoint("/surveys/", "/surveys/", "surveys", "survey"),
    MigrationCategory.WORKFLOWS: Endpoint("/workflows/", "/workflows/", "workflows", "workflow"),
    MigrationCategory.CAMPAIGNS: Endpoint("/campaigns/", "/campaigns/", "campaigns", "campaign"),
    MigrationCategory.AI_PROMPTS: Endpoint("/ai-prompts/", "/ai-prompts/", "prompts", "prompt"),
    MigrationCategory.TEMPLATES: Endpoint(
        "/locations/{location_id}/templates", "/locations/{location_id}/templates", "templates", "template"
    ),
    MigrationCategory.MEDIA: Endpoint("/medias/files", "/medias/files", "files", "file"),
}

# Phrases the platform uses in 400 responses for records that already exist
DUPLICATE_MARKERS = ("already exist", "duplicate")


class HighLevelProvider(BaseCRMProvider):
    """One tenant (location) on the HighLevel platform"""

    def __init__(
        self,
        credentials: AccountCredentials,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.tenant_id = credentials.tenant_id
        self._api_key = credentials.api_key
        self.base_url = (base_url or settings.PLATFORM_API_URL).rstrip("/")
        self.api_version = api_version or settings.PLATFORM_API_VERSION
        self.timeout = timeout or settings.PLATFORM_REQUEST_TIMEOUT
        self._limiter = rate_limiter or RateLimiter(settings.PLATFORM_RATE_LIMIT)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Version": self.api_version,
                    "Accept": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _path(self, template: str) -> str:
        return template.format(location_id=self.tenant_id)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        await self._limiter.acquire()
        client = await self._get_client()

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise TransientPlatformError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise TransientPlatformError(f"Connection to platform failed: {e}", unreachable=True) from e

        logger.debug(f"{method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            self._raise_for_status(response, method, path)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            # Proxies and maintenance pages answer 2xx with HTML
            raise TransientPlatformError(
                f"Platform returned a non-JSON body for {method} {path}", status_code=response.status_code
            ) from e

    def _raise_for_status(self, response: httpx.Response, method: str, path: str):
        status = response.status_code
        body = self._error_body(response)
        message = self._error_message(body, response)

        if status == 401:
            raise AccountAccessError("API key was rejected by the platform", status_code=401)
        if status == 403:
            raise AccountAccessError("API key is not authorized for this location", status_code=403)
        if status == 404:
            raise RecordNotFoundError(f"Resource not found: {path}", status_code=404)
        if status == 409 or (status == 400 and any(m in message.lower() for m in DUPLICATE_MARKERS)):
            raise RecordConflictError(message, existing_id=self._existing_id(body), status_code=status)
        if status == 429:
            raise TransientPlatformError(
                "Rate limited by platform",
                status_code=429,
                retry_after=self._retry_after(response),
            )
        if status >= 500:
            raise TransientPlatformError(f"Platform error {status}: {message}", status_code=status)
        raise RecordRejectedError(f"Platform rejected {method} {path} ({status}): {message}", status_code=status)

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _error_message(body: Dict[str, Any], response: httpx.Response) -> str:
        message = body.get("message") or body.get("error")
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        if not message:
            message = response.text[:200] or response.reason_phrase
        return str(message)

    @staticmethod
    def _existing_id(body: Dict[str, Any]) -> Optional[str]:
        meta = body.get("meta") or {}
        return meta.get("contactId") or meta.get("id") or body.get("existingId")

    @staticmethod
    def _retry_after(response: httpx.Response) -> Optional[float]:
        value = response.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None

    # ==================== Account ====================

    async def get_location(self) -> LocationInfo:
        data = await self._request("GET", f"/locations/{self.tenant_id}")
        location = data.get("location") or data
        return LocationInfo(id=location.get("id", self.tenant_id), name=location.get("name", ""))

    # ==================== Export ====================

    async def list_page(self, category: MigrationCategory, skip: int, limit: int) -> Page:
        endpoint = CATEGORY_ENDPOINTS[category]
        data = await self._request(
            "GET",
            self._path(endpoint.list_path),
            params={"locationId": self.tenant_id, "limit": limit, "skip": skip},
        )
        items = data.get(endpoint.list_key) or []
        total = (data.get("meta") or {}).get("total")
        if total is not None:
            has_more = skip + len(items) < total and len(items) > 0
        else:
            has_more = len(items) >= limit
        return Page(items=items, total=total, has_more=has_more)

    async def count(self, category: MigrationCategory) -> int:
        page = await self.list_page(category, skip=0, limit=1)
        if page.total is not None:
            return int(page.total)

        # No meta.total on this endpoint; walk the pages
        count, skip = 0, 0
        limit = settings.MIGRATION_PAGE_SIZE
        while True:
            page = await self.list_page(category, skip=skip, limit=limit)
            count += len(page.items)
            if not page.has_more:
                return count
            skip += limit

    # ==================== Import ====================

    async def create(self, category: MigrationCategory, payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = CATEGORY_ENDPOINTS[category]
        data = await self._request(
            "POST",
            self._path(endpoint.write_path),
            json={**payload, "locationId": self.tenant_id},
        )
        return data.get(endpoint.item_key) or data

    async def update(self, category: MigrationCategory, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        endpoint = CATEGORY_ENDPOINTS[category]
        path = f"{self._path(endpoint.write_path).rstrip('/')}/{record_id}"
        data = await self._request("PUT", path, json=payload)
        return data.get(endpoint.item_key) or data

    # ==================== Contacts ====================

    async def find_contact_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        data = await self._request(
            "GET",
            "/contacts/search/duplicate",
            params={"locationId": self.tenant_id, "email": email},
        )
        return data.get("contact")

    async def list_contact_notes(self, contact_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/contacts/{contact_id}/notes")
        return data.get("notes") or []

    async def create_contact_note(self, contact_id: str, body: str) -> Dict[str, Any]:
        data = await self._request("POST", f"/contacts/{contact_id}/notes", json={"body": body})
        return data.get("note") or data

    # ==================== Forms ====================

    async def list_form_submissions(self, form_id: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            "/forms/submissions",
            params={"locationId": self.tenant_id, "formId": form_id, "limit": settings.MIGRATION_PAGE_SIZE},
        )
        return data.get("submissions") or []
