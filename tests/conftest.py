"""
Pytest configuration and fixtures for Secret Sync tests.

Provides fixtures for:
- A clean environment (no provider variables, no cached settings or provider)
- Keycloak / Authentik environment variables
- Desired client configurations
- A scriptable in-memory backend
"""

import asyncio
from typing import Dict, Optional

import pytest

from secret_sync.config.settings import get_settings
from secret_sync.core.provider import reset_provider
from secret_sync.core.provider.provider import OIDCBackend, ProviderError
from secret_sync.domain.models import OIDCClientConfig, SecretResult

PROVIDER_ENV_VARS = [
    "OIDC_PROVIDER",
    "REQUIRE_PROVIDER",
    "API_KEY",
    "KEYCLOAK_URL",
    "KEYCLOAK_ID",
    "KEYCLOAK_SECRET",
    "KEYCLOAK_REALM",
    "AUTHENTIK_URL",
    "AUTHENTIK_TOKEN",
    "AUTHENTIK_FLOW_AUTH",
    "AUTHENTIK_FLOW_INVALIDATION",
    "AUTHENTIK_PROPERTY_NAMES",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Strip provider configuration from the environment and reset global state."""
    for var in PROVIDER_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    reset_provider()

    yield

    get_settings.cache_clear()
    reset_provider()


@pytest.fixture
def keycloak_env(monkeypatch) -> Dict[str, str]:
    """Environment satisfying the Keycloak schema."""
    env = {
        "KEYCLOAK_URL": "https://keycloak.test",
        "KEYCLOAK_ID": "secret-sync",
        "KEYCLOAK_SECRET": "kc-admin-secret",
        "KEYCLOAK_REALM": "test",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture
def authentik_env(monkeypatch) -> Dict[str, str]:
    """Environment satisfying the Authentik schema."""
    env = {
        "AUTHENTIK_URL": "https://authentik.test",
        "AUTHENTIK_TOKEN": "ak-api-token",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture
def confidential_config() -> OIDCClientConfig:
    return OIDCClientConfig(
        is_public=False,
        redirect_urls=["https://app.test/callback", "https://app.test/logout"],
    )


@pytest.fixture
def public_config() -> OIDCClientConfig:
    return OIDCClientConfig(is_public=True, redirect_urls=["https://spa.test/*"])


class FakeBackend(OIDCBackend):
    """In-memory backend keyed by client name.

    Clients registered in `clients` map name -> (config, secret). Setting
    `error` makes every call raise it. Every call yields to the event loop once,
    so gathered calls interleave.
    """

    kind = "fake"

    def __init__(self):
        self.clients: Dict[str, tuple] = {}
        self.error: Optional[Exception] = None
        self.create_calls = []
        self.validate_calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def create_client(self, name: str, config: OIDCClientConfig) -> SecretResult:
        self.create_calls.append((name, config))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        if name in self.clients:
            return SecretResult.already_existed(self.clients[name][1])
        secret = None if config.is_public else f"{name}-secret"
        self.clients[name] = (config, secret)
        return SecretResult.created(secret)

    async def validate_client(self, name: str, config: OIDCClientConfig, secret: str) -> bool:
        self.validate_calls.append((name, config, secret))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1
        if self.error is not None:
            raise self.error
        if name not in self.clients:
            return False
        stored_config, stored_secret = self.clients[name]
        return stored_config == config and (config.is_public or stored_secret == secret)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def backend_error() -> ProviderError:
    return ProviderError(
        "Keycloak client creation for app-1 failed: 409 Client app-1 already exists",
        status_code=409,
    )
