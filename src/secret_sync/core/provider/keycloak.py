"""Keycloak identity-provider backend.

Talks to the Keycloak admin REST API with a service-account client
(client_credentials grant). The service account needs the realm-management
roles manage-clients and view-clients on the target realm.
"""

import logging
import secrets
from typing import Optional

import httpx
from pydantic import AnyHttpUrl, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from .provider import OIDCBackend, ProviderError
from secret_sync.domain.models.oidc import OIDCClientConfig, SecretResult

logger = logging.getLogger(__name__)


class KeycloakConfig(BaseSettings):
    """Keycloak connection parameters, read from KEYCLOAK_* environment variables."""

    keycloak_url: AnyHttpUrl
    keycloak_id: str = Field(..., min_length=1)
    keycloak_secret: SecretStr
    keycloak_realm: str = Field(default="master", min_length=1)

    @field_validator("keycloak_secret")
    @classmethod
    def validate_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("KEYCLOAK_SECRET must not be empty")
        return v

    @property
    def base_url(self) -> str:
        return str(self.keycloak_url).rstrip("/")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"
        frozen = True


def _expect(response: httpx.Response, action: str, *ok_statuses: int) -> None:
    """Raise ProviderError unless the response has one of the expected statuses."""
    if response.status_code not in ok_statuses:
        raise ProviderError(
            f"Keycloak {action} failed: {response.status_code} {response.text}",
            status_code=response.status_code,
        )


def _client_matches(remote: dict, config: OIDCClientConfig) -> bool:
    """Compare a Keycloak ClientRepresentation with the desired shape (secret excluded)."""
    return (
        bool(remote.get("publicClient", False)) == config.is_public
        and config.redirects_match(remote.get("redirectUris"))
    )


class KeycloakBackend(OIDCBackend):
    """Keycloak admin API client.

    Example Configuration:
        KEYCLOAK_URL=https://keycloak.example.com
        KEYCLOAK_ID=secret-sync
        KEYCLOAK_SECRET=xxx
        KEYCLOAK_REALM=master
    """

    kind = "keycloak"

    def __init__(
        self,
        config: KeycloakConfig,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Keycloak backend.

        Args:
            config: Parsed Keycloak configuration
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.config = config
        self.timeout = timeout
        self._transport = transport

    @property
    def _clients_path(self) -> str:
        return f"/admin/realms/{self.config.keycloak_realm}/clients"

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _auth_headers(self, client: httpx.AsyncClient) -> dict:
        """Obtain an admin access token for the service account."""
        response = await client.post(
            f"/realms/{self.config.keycloak_realm}/protocol/openid-connect/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.config.keycloak_id,
                "client_secret": self.config.keycloak_secret.get_secret_value(),
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        _expect(response, "token request", 200)
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    async def _find_client(self, client: httpx.AsyncClient, headers: dict, name: str) -> Optional[dict]:
        response = await client.get(self._clients_path, params={"clientId": name}, headers=headers)
        _expect(response, f"client lookup for {name}", 200)
        for remote in response.json():
            if remote.get("clientId") == name:
                return remote
        return None

    async def _get_secret(self, client: httpx.AsyncClient, headers: dict, client_uuid: str) -> Optional[str]:
        response = await client.get(f"{self._clients_path}/{client_uuid}/client-secret", headers=headers)
        _expect(response, "client secret lookup", 200)
        return response.json().get("value")

    def _representation(self, name: str, config: OIDCClientConfig, secret: Optional[str]) -> dict:
        representation = {
            "clientId": name,
            "name": name,
            "enabled": True,
            "protocol": "openid-connect",
            "publicClient": config.is_public,
            "redirectUris": list(config.redirect_urls),
            "webOrigins": ["+"],
            "standardFlowEnabled": True,
            "serviceAccountsEnabled": not config.is_public,
        }
        if secret is not None:
            representation["secret"] = secret
        return representation

    async def create_client(self, name: str, config: OIDCClientConfig) -> SecretResult:
        """Create a Keycloak client, or bring an existing one in line with config.

        Args:
            name: clientId to create
            config: Desired client shape

        Returns:
            created(secret) for a new client, already_existed(secret) otherwise

        Raises:
            ProviderError: If any admin API call fails, including a 409 when
                another request created the same clientId concurrently
        """
        try:
            async with self._http() as client:
                headers = await self._auth_headers(client)
                existing = await self._find_client(client, headers, name)

                if existing is not None:
                    return await self._reconcile(client, headers, name, config, existing)

                secret = None if config.is_public else secrets.token_urlsafe(32)
                response = await client.post(
                    self._clients_path,
                    json=self._representation(name, config, secret),
                    headers=headers,
                )
                _expect(response, f"client creation for {name}", 201)
                logger.info(f"Created Keycloak client {name}")
                return SecretResult.created(secret)

        except httpx.HTTPError as e:
            raise ProviderError(f"Keycloak request failed: {e}") from e

    async def _reconcile(
        self,
        client: httpx.AsyncClient,
        headers: dict,
        name: str,
        config: OIDCClientConfig,
        existing: dict,
    ) -> SecretResult:
        """Update a drifted client in place, keeping its secret."""
        current_secret = None
        if not existing.get("publicClient", False):
            current_secret = await self._get_secret(client, headers, existing["id"])

        if _client_matches(existing, config):
            return SecretResult.already_existed(None if config.is_public else current_secret)

        secret = None if config.is_public else (current_secret or secrets.token_urlsafe(32))
        response = await client.put(
            f"{self._clients_path}/{existing['id']}",
            json={**existing, **self._representation(name, config, secret)},
            headers=headers,
        )
        _expect(response, f"client update for {name}", 204)
        logger.info(f"Updated drifted Keycloak client {name}")
        return SecretResult.already_existed(secret)

    async def validate_client(self, name: str, config: OIDCClientConfig, secret: str) -> bool:
        """Check a Keycloak client's existence, configuration and secret (read-only)."""
        try:
            async with self._http() as client:
                headers = await self._auth_headers(client)
                existing = await self._find_client(client, headers, name)

                if existing is None or not _client_matches(existing, config):
                    return False
                if config.is_public:
                    return True

                current_secret = await self._get_secret(client, headers, existing["id"])
                if current_secret is None:
                    return False
                return secrets.compare_digest(current_secret.encode(), secret.encode())

        except httpx.HTTPError as e:
            raise ProviderError(f"Keycloak request failed: {e}") from e
