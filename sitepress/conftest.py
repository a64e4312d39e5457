# sitepress/conftest.py
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add repository root to PYTHONPATH
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

# Point the suite at a throwaway SQLite database before settings are loaded
_TEST_DB_DIR = tempfile.mkdtemp(prefix="sitepress-tests-")
os.environ["ENV"] = "test"
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["REVALIDATE_SECRET"] = "test-revalidate-secret"
os.environ["PUBLIC_DOMAIN"] = "vercel.pub"
os.environ.setdefault("AUTH_ALLOW_USER_HEADER", "true")


class FakeRevalidationClient:
    """Records revalidate calls; hostnames listed in `failing` raise."""

    def __init__(self, failing=None, hanging=None):
        self.calls = []
        self.failing = set(failing or ())
        self.hanging = set(hanging or ())

    async def revalidate(self, hostname, tenant_key, slug):
        import asyncio
        import httpx

        self.calls.append((hostname, tenant_key, slug))
        if hostname in self.hanging:
            await asyncio.sleep(60)
        if hostname in self.failing:
            raise httpx.ConnectError(f"cannot reach {hostname}")


class FakePlaceholders:
    def __init__(self, result="data:image/png;base64,ZmFrZQ=="):
        self.result = result
        self.requested = []

    async def blur_data_url(self, image):
        self.requested.append(image)
        return self.result


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    """Create all tables once per test session."""
    from sitepress.core.database import create_all_tables, dispose_engine, drop_all_tables

    create_all_tables()
    yield
    drop_all_tables()
    dispose_engine()


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Truncate all tables around each test."""
    from sitepress.core.database import truncate_all_tables

    truncate_all_tables()
    yield
    truncate_all_tables()


@pytest.fixture
def revalidation_client():
    return FakeRevalidationClient()


@pytest.fixture
def failing_revalidation_client():
    """Factory for clients whose given hostnames fail or hang."""
    return FakeRevalidationClient


@pytest.fixture
def placeholders():
    return FakePlaceholders()


@pytest.fixture
def make_gateway(placeholders):
    """Build a gateway around a given revalidation client."""
    from sitepress.features.plans.gateway import AuthorizedMutationGateway
    from sitepress.features.revalidation.service import HostInvalidator

    def _make(revalidation_client):
        invalidator = HostInvalidator(client=revalidation_client, public_domain="vercel.pub", timeout_seconds=0.2)
        return AuthorizedMutationGateway(invalidator=invalidator, placeholders=placeholders)

    return _make


@pytest.fixture
def gateway(make_gateway, revalidation_client):
    return make_gateway(revalidation_client)


@pytest.fixture
def client(gateway):
    """TestClient whose /api/plan routes use the fake-backed gateway."""
    from fastapi.testclient import TestClient
    from sitepress.api.plans import get_gateway
    from sitepress.main import app

    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_site():
    """Create a user and a site they own."""
    from sitepress.features.sites.persistence import SitePersistence
    from sitepress.features.users.service import get_or_create_user

    def _make(user_id, subdomain=None, custom_domain=None, name="Site"):
        get_or_create_user(user_id)
        return SitePersistence.create_site(
            user_id, name=name, subdomain=subdomain, custom_domain=custom_domain
        )

    return _make
