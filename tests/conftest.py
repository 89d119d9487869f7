import os

# must be set before florify modules read settings
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("INTERNAL_ADMIN_KEY", "test-admin-key")

import pytest
import pytest_asyncio
import httpx

from florify.core.config import settings
from florify.main import app
from florify.services.catalog_types import CatalogRecord
from florify.services.internal_admin import get_catalog_store, get_object_store
from florify.services.storage import LocalObjectStore

from tests.fakes import InMemoryCatalogStore


@pytest.fixture
def rosa() -> CatalogRecord:
    return CatalogRecord(codbarra="789", descricao="Rosa Vermelha", item_code="R-01")


@pytest.fixture
def store() -> InMemoryCatalogStore:
    return InMemoryCatalogStore()


@pytest.fixture
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(str(tmp_path / "objects"))


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Internal-Admin-Key": settings.internal_admin_key, "X-User-Id": "usr_test"}


@pytest_asyncio.fixture
async def client(store, object_store):
    """
    HTTP client wired to the in-memory store via dependency override.
    """
    app.dependency_overrides[get_catalog_store] = lambda: store
    app.dependency_overrides[get_object_store] = lambda: object_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
