"""
Integration tests for the client provisioning endpoints and app startup.
"""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from secret_sync.api.routes.clients import get_provider
from secret_sync.config.settings import Settings, get_settings
from secret_sync.core.provider import OIDCProvider, ProviderError, get_oidc_provider
from secret_sync.main import app, lifespan

pytestmark = pytest.mark.integration

CONFIG = {"is_public": False, "redirect_urls": ["https://app.test/callback"]}


@pytest.fixture
def provider(fake_backend):
    return OIDCProvider(fake_backend)


@pytest_asyncio.fixture
async def client(provider):
    """Test HTTP client with the provider dependency overridden"""
    app.dependency_overrides[get_provider] = lambda: provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


class TestProvisionEndpoint:
    """Test POST /api/v1/clients/{name}"""

    @pytest.mark.asyncio
    async def test_create(self, client):
        response = await client.post("/api/v1/clients/app-1", json={"config": CONFIG})

        assert response.status_code == 200
        assert response.json() == {"kind": "created", "secret": "app-1-secret"}

    @pytest.mark.asyncio
    async def test_already_valid(self, client):
        await client.post("/api/v1/clients/app-1", json={"config": CONFIG})

        response = await client.post(
            "/api/v1/clients/app-1", json={"config": CONFIG, "secret": "app-1-secret"}
        )

        assert response.status_code == 200
        assert response.json() == {"kind": "already_valid", "secret": None}

    @pytest.mark.asyncio
    async def test_backend_failure_is_generic(self, client, fake_backend):
        fake_backend.error = httpx.ConnectError("connect to keycloak.internal:8443 refused")

        response = await client.post("/api/v1/clients/app-1", json={"config": CONFIG})

        assert response.status_code == 502
        assert response.json() == {"detail": "Error creating OIDC client"}
        assert "keycloak" not in response.text

    @pytest.mark.asyncio
    async def test_invalid_body(self, client):
        response = await client.post("/api/v1/clients/app-1", json={"config": {"redirect_urls": "nope"}})

        assert response.status_code == 422


class TestValidateEndpoint:
    """Test POST /api/v1/clients/{name}/validate"""

    @pytest.mark.asyncio
    async def test_valid(self, client):
        await client.post("/api/v1/clients/app-1", json={"config": CONFIG})

        response = await client.post(
            "/api/v1/clients/app-1/validate", json={"config": CONFIG, "secret": "app-1-secret"}
        )

        assert response.status_code == 200
        assert response.json() == {"valid": True}

    @pytest.mark.asyncio
    async def test_invalid_is_not_an_error(self, client):
        response = await client.post(
            "/api/v1/clients/unknown/validate", json={"config": CONFIG, "secret": "x"}
        )

        assert response.status_code == 200
        assert response.json() == {"valid": False}

    @pytest.mark.asyncio
    async def test_backend_failure_is_generic(self, client, fake_backend):
        fake_backend.error = ProviderError("Authentik provider lookup failed: 500", 500)

        response = await client.post(
            "/api/v1/clients/app-1/validate", json={"config": CONFIG, "secret": "x"}
        )

        assert response.status_code == 502
        assert response.json() == {"detail": "Failed to validate client. See upstream logs."}


class TestApiKey:
    """Test the optional shared API key"""

    @pytest.fixture(autouse=True)
    def api_key_settings(self):
        app.dependency_overrides[get_settings] = lambda: Settings(api_key="sync-key")
        yield
        app.dependency_overrides.pop(get_settings, None)

    @pytest.mark.asyncio
    async def test_missing_key(self, client):
        response = await client.post("/api/v1/clients/app-1", json={"config": CONFIG})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_key(self, client):
        response = await client.post(
            "/api/v1/clients/app-1",
            json={"config": CONFIG},
            headers={"Authorization": "Bearer wrong"},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_correct_key(self, client):
        response = await client.post(
            "/api/v1/clients/app-1",
            json={"config": CONFIG},
            headers={"Authorization": "Bearer sync-key"},
        )

        assert response.status_code == 200


class TestWithoutProvider:
    """Test degraded mode and startup policy"""

    @pytest.mark.asyncio
    async def test_client_routes_unavailable(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post("/api/v1/clients/app-1", json={"config": CONFIG})
            health = await ac.get("/health")

        assert response.status_code == 503
        assert health.json()["status"] == "degraded"
        assert health.json()["provider"] is None

    @pytest.mark.asyncio
    async def test_startup_refused_without_provider(self):
        with pytest.raises(RuntimeError, match="No OIDC provider configured"):
            async with lifespan(app):
                pass

    @pytest.mark.asyncio
    async def test_degraded_startup_allowed(self, monkeypatch):
        monkeypatch.setenv("REQUIRE_PROVIDER", "false")

        async with lifespan(app):
            with pytest.raises(RuntimeError):
                get_oidc_provider()

    @pytest.mark.asyncio
    async def test_startup_selects_provider(self, authentik_env):
        async with lifespan(app):
            assert get_oidc_provider().kind == "authentik"

            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                health = await ac.get("/health")

        assert health.json()["status"] == "healthy"
        assert health.json()["provider"] == "authentik"
