"""
Pytest Configuration and Fixtures

This file contains shared fixtures and configuration for all tests.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

# Set test environment before importing app
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PLATFORM_RATE_LIMIT"] = "0"
os.environ.setdefault("ENCRYPTION_KEY", "bNsb0oV6cQ6hXgMHc0Q2Ss8H7xgxgZcJ9l4Ll1Q8f0A=")

from main import app
from core.database import Base
from api import migration as migration_api
from services.migration.analyzer import SourceAnalyzer
from services.migration.backup import BackupExporter
from services.migration.domain import AccountCredentials
from services.migration.history import HistoryService
from services.migration.job_store import JobStore
from services.migration.orchestrator import MigrationOrchestrator
from services.migration.providers import HighLevelProvider
from services.migration.retry import RateLimiter, RetryPolicy
from services.migration.transfer import CategoryTransferUnit
from services.migration.validator import CredentialValidator
from services.migration.vault import CredentialVault

from fakes import DESTINATION, SOURCE, FakePlatform


# ===========================================
# Database Fixtures
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Fresh SQLite file per test.

    The executor, pollers and cancel requests each open their own session,
    so every session gets its own connection instead of one shared StaticPool.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'migration.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


@pytest.fixture
def vault() -> CredentialVault:
    return CredentialVault(os.environ["ENCRYPTION_KEY"])


@pytest.fixture
def store(database, vault) -> JobStore:
    return JobStore(session_factory=database, vault=vault)


# ===========================================
# Platform Fixtures
# ===========================================

@pytest.fixture
def platform() -> FakePlatform:
    """
    Fake CRM platform with an empty source and destination location.
    """
    fake = FakePlatform()
    fake.add_location(SOURCE, name="Downtown Studio")
    fake.add_location(DESTINATION, name="Uptown Studio")
    return fake


@pytest.fixture
def source_credentials(platform) -> AccountCredentials:
    return AccountCredentials(api_key=platform.locations[SOURCE].api_key, tenant_id=SOURCE)


@pytest.fixture
def destination_credentials(platform) -> AccountCredentials:
    return AccountCredentials(api_key=platform.locations[DESTINATION].api_key, tenant_id=DESTINATION)


@pytest.fixture
def provider_factory(platform):
    """
    Real HighLevelProvider wired to the fake platform.
    """
    def _factory(credentials: AccountCredentials) -> HighLevelProvider:
        return HighLevelProvider(
            credentials,
            base_url="https://platform.test",
            rate_limiter=RateLimiter(0),
            transport=platform.transport(),
        )

    return _factory


@pytest.fixture
def retry() -> RetryPolicy:
    """Retry policy without waiting between attempts"""
    return RetryPolicy(max_attempts=3, base_delay=0, max_delay=0, timeout=5.0)


@pytest.fixture
def transfer_unit(retry) -> CategoryTransferUnit:
    return CategoryTransferUnit(retry=retry, page_size=25, concurrency=4)


@pytest.fixture
def validator(provider_factory, retry) -> CredentialValidator:
    return CredentialValidator(provider_factory, retry=retry)


@pytest.fixture
def analyzer(provider_factory, retry) -> SourceAnalyzer:
    return SourceAnalyzer(provider_factory, retry=retry, concurrency=4)


@pytest_asyncio.fixture
async def orchestrator(store, provider_factory, validator, transfer_unit) -> AsyncGenerator[MigrationOrchestrator, None]:
    orchestrator = MigrationOrchestrator(
        store=store,
        provider_factory=provider_factory,
        validator=validator,
        transfer_unit=transfer_unit,
    )
    yield orchestrator
    await orchestrator.shutdown()


@pytest.fixture
def exporter(provider_factory, analyzer, transfer_unit) -> BackupExporter:
    return BackupExporter(provider_factory, analyzer=analyzer, transfer_unit=transfer_unit)


# ===========================================
# API Fixtures
# ===========================================

@pytest_asyncio.fixture(scope="function")
async def client(orchestrator, validator, analyzer, store, exporter) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client with migration services bound to the fake platform.
    """
    app.dependency_overrides[migration_api.get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[migration_api.get_validator] = lambda: validator
    app.dependency_overrides[migration_api.get_analyzer] = lambda: analyzer
    app.dependency_overrides[migration_api.get_history_service] = lambda: HistoryService(store)
    app.dependency_overrides[migration_api.get_backup_exporter] = lambda: exporter

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ===========================================
# Factory Fixtures
# ===========================================

@pytest.fixture
def make_contacts():
    """
    Factory fixture to build source contact records.
    """
    def _make_contacts(count: int, tags=None, prefix: str = "client") -> list:
        return [
            {
                "id": f"{prefix}-{i}",
                "firstName": f"Client{i}",
                "lastName": "Example",
                "email": f"{prefix}{i}@example.com",
                "tags": list(tags or []),
            }
            for i in range(count)
        ]

    return _make_contacts
