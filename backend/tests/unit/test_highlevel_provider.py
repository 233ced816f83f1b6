"""
HighLevel Provider Unit Tests
"""

import json

import httpx
import pytest

from services.migration.categories import MigrationCategory
from services.migration.domain import AccountCredentials
from services.migration.errors import (
    AccountAccessError,
    RecordConflictError,
    RecordNotFoundError,
    RecordRejectedError,
    TransientPlatformError,
)
from services.migration.providers import HighLevelProvider
from services.migration.retry import RateLimiter

from fakes import SOURCE

pytestmark = pytest.mark.unit


def make_provider(handler, tenant_id="loc-1", api_key="pit-123"):
    return HighLevelProvider(
        AccountCredentials(api_key=api_key, tenant_id=tenant_id),
        base_url="https://platform.test",
        api_version="2021-07-28",
        rate_limiter=RateLimiter(0),
        transport=httpx.MockTransport(handler),
    )


class TestRequests:
    """Test how requests are built."""

    @pytest.mark.asyncio
    async def test_sends_auth_and_version_headers(self):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, json={"location": {"id": "loc-1", "name": "Studio"}})

        provider = make_provider(handler)
        location = await provider.get_location()
        await provider.close()

        assert location.name == "Studio"
        assert seen["authorization"] == "Bearer pit-123"
        assert seen["version"] == "2021-07-28"

    @pytest.mark.asyncio
    async def test_list_page_uses_location_and_paging(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"tags": [{"id": "t1", "name": "vip"}], "meta": {"total": 3}})

        provider = make_provider(handler)
        page = await provider.list_page(MigrationCategory.TAGS, skip=1, limit=1)
        await provider.close()

        assert seen["path"] == "/locations/loc-1/tags"
        assert seen["params"] == {"locationId": "loc-1", "limit": "1", "skip": "1"}
        assert page.items == [{"id": "t1", "name": "vip"}]
        assert page.total == 3
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_count_walks_pages_without_meta_total(self, monkeypatch):
        from core.config import settings
        monkeypatch.setattr(settings, "MIGRATION_PAGE_SIZE", 2)
        records = [{"id": str(i)} for i in range(5)]

        def handler(request):
            skip = int(request.url.params["skip"])
            limit = int(request.url.params["limit"])
            return httpx.Response(200, json={"forms": records[skip:skip + limit]})

        provider = make_provider(handler)
        count = await provider.count(MigrationCategory.FORMS)
        await provider.close()

        assert count == 5

    @pytest.mark.asyncio
    async def test_create_adds_location_id(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"contact": {"id": "c-9"}})

        provider = make_provider(handler)
        created = await provider.create(MigrationCategory.CONTACTS, {"email": "a@example.com"})
        await provider.close()

        assert created == {"id": "c-9"}
        assert seen["body"] == {"email": "a@example.com", "locationId": "loc-1"}

    @pytest.mark.asyncio
    async def test_update_puts_to_record_path(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={"pipeline": {"id": "p-1"}})

        provider = make_provider(handler)
        await provider.update(MigrationCategory.PIPELINES, "p-1", {"name": "Sales"})
        await provider.close()

        assert seen == {"method": "PUT", "path": "/opportunities/pipelines/p-1"}


class TestErrorMapping:
    """Test platform status codes become engine errors."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (401, AccountAccessError),
        (403, AccountAccessError),
        (404, RecordNotFoundError),
        (422, RecordRejectedError),
        (500, TransientPlatformError),
        (503, TransientPlatformError),
    ])
    async def test_status_codes(self, status, error):
        provider = make_provider(lambda request: httpx.Response(status, json={"message": "nope"}))

        with pytest.raises(error):
            await provider.list_page(MigrationCategory.CONTACTS, 0, 10)
        await provider.close()

    @pytest.mark.asyncio
    async def test_rate_limit_carries_retry_after(self):
        provider = make_provider(lambda request: httpx.Response(429, headers={"Retry-After": "3"}))

        with pytest.raises(TransientPlatformError) as exc_info:
            await provider.count(MigrationCategory.TAGS)
        await provider.close()

        assert exc_info.value.retry_after == 3.0

    @pytest.mark.asyncio
    async def test_duplicate_message_becomes_conflict(self):
        def handler(request):
            return httpx.Response(400, json={
                "message": "This location does not allow duplicated contacts.",
                "meta": {"contactId": "c-existing"},
            })

        provider = make_provider(handler)
        with pytest.raises(RecordConflictError) as exc_info:
            await provider.create(MigrationCategory.CONTACTS, {"email": "a@example.com"})
        await provider.close()

        assert exc_info.value.existing_id == "c-existing"

    @pytest.mark.asyncio
    async def test_connection_failure_is_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = make_provider(handler)
        with pytest.raises(TransientPlatformError) as exc_info:
            await provider.get_location()
        await provider.close()

        assert exc_info.value.unreachable is True


    @pytest.mark.asyncio
    async def test_non_json_success_body_is_transient(self):
        def handler(request):
            return httpx.Response(200, text="<html>Service maintenance</html>", headers={"content-type": "text/html"})

        provider = make_provider(handler)
        with pytest.raises(TransientPlatformError) as exc_info:
            await provider.list_page(MigrationCategory.TAGS, skip=0, limit=10)
        await provider.close()

        assert exc_info.value.status_code == 200
        assert exc_info.value.unreachable is False


class TestAgainstFakePlatform:
    """Test the provider against the in-memory platform."""

    @pytest.mark.asyncio
    async def test_contact_notes(self, platform, provider_factory, source_credentials):
        platform.locations[SOURCE].notes["c-1"].append({"id": "n-1", "body": "Prefers mornings"})
        provider = provider_factory(source_credentials)

        notes = await provider.list_contact_notes("c-1")
        await provider.create_contact_note("c-1", "Allergic to latex")
        await provider.close()

        assert [n["body"] for n in notes] == ["Prefers mornings"]
        assert len(platform.locations[SOURCE].notes["c-1"]) == 2

    @pytest.mark.asyncio
    async def test_find_contact_by_email(self, platform, provider_factory, source_credentials):
        platform.seed(SOURCE, MigrationCategory.CONTACTS, [{"id": "c-1", "email": "Ana@Example.com"}])
        provider = provider_factory(source_credentials)

        found = await provider.find_contact_by_email("ana@example.com")
        missing = await provider.find_contact_by_email("nobody@example.com")
        await provider.close()

        assert found["id"] == "c-1"
        assert missing is None
