"""Authentik identity-provider backend.

An OIDC client on Authentik is two objects: an OAuth2 provider (client id,
secret, redirect URIs) and an application bound to it. Both are created with
an API token; the provider is rolled back if the application cannot be created,
and an existing provider without an application is completed on the next call.
"""

import logging
import re
import secrets
from typing import List, Optional

import httpx
from pydantic import AnyHttpUrl, SecretStr, field_validator
from pydantic_settings import BaseSettings

from .provider import OIDCBackend, ProviderError
from secret_sync.domain.models.oidc import OIDCClientConfig, SecretResult

logger = logging.getLogger(__name__)

PROVIDERS_PATH = "/api/v3/providers/oauth2/"
APPLICATIONS_PATH = "/api/v3/core/applications/"
FLOWS_PATH = "/api/v3/flows/instances/"
SCOPE_MAPPINGS_PATH = "/api/v3/propertymappings/provider/scope/"


class AuthentikConfig(BaseSettings):
    """Authentik connection parameters, read from AUTHENTIK_* environment variables."""

    authentik_url: AnyHttpUrl
    authentik_token: SecretStr
    authentik_flow_auth: str = "default-provider-authorization-implicit-consent"
    authentik_flow_invalidation: str = "default-provider-invalidation-flow"
    # Comma-separated scope mapping names attached to new providers
    authentik_property_names: str = ""

    @field_validator("authentik_token")
    @classmethod
    def validate_token(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("AUTHENTIK_TOKEN must not be empty")
        return v

    @property
    def base_url(self) -> str:
        return str(self.authentik_url).rstrip("/")

    @property
    def property_names(self) -> List[str]:
        return [n.strip() for n in self.authentik_property_names.split(",") if n.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"
        frozen = True


def _expect(response: httpx.Response, action: str, *ok_statuses: int) -> None:
    if response.status_code not in ok_statuses:
        raise ProviderError(
            f"Authentik {action} failed: {response.status_code} {response.text}",
            status_code=response.status_code,
        )


def _redirect_urls(provider: dict) -> List[str]:
    """Read redirect URIs in either the current list form or the legacy newline-separated form."""
    raw = provider.get("redirect_uris") or []
    if isinstance(raw, str):
        return [line.strip() for line in raw.splitlines() if line.strip()]
    return [entry["url"] if isinstance(entry, dict) else entry for entry in raw]


def _client_type(config: OIDCClientConfig) -> str:
    return "public" if config.is_public else "confidential"


def _provider_matches(provider: dict, config: OIDCClientConfig) -> bool:
    return provider.get("client_type") == _client_type(config) and config.redirects_match(
        _redirect_urls(provider)
    )


def _slugify(name: str) -> str:
    return re.sub(r"[^-a-zA-Z0-9_]", "-", name)


class AuthentikBackend(OIDCBackend):
    """Authentik admin API client.

    Example Configuration:
        AUTHENTIK_URL=https://authentik.example.com
        AUTHENTIK_TOKEN=xxx
        AUTHENTIK_FLOW_AUTH=default-provider-authorization-implicit-consent
        AUTHENTIK_PROPERTY_NAMES="authentik default OAuth Mapping: OpenID 'openid'"
    """

    kind = "authentik"

    def __init__(
        self,
        config: AuthentikConfig,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.config.authentik_token.get_secret_value()}"},
        )

    async def _find_provider(self, client: httpx.AsyncClient, name: str) -> Optional[dict]:
        response = await client.get(PROVIDERS_PATH, params={"client_id": name})
        _expect(response, f"provider lookup for {name}", 200)
        for provider in response.json().get("results", []):
            if provider.get("client_id") == name:
                return provider
        return None

    async def _flow_pk(self, client: httpx.AsyncClient, slug: str) -> str:
        response = await client.get(FLOWS_PATH, params={"slug": slug})
        _expect(response, f"flow lookup for {slug}", 200)
        results = response.json().get("results", [])
        if not results:
            raise ProviderError(f"Authentik flow {slug} not found")
        return results[0]["pk"]

    async def _property_mapping_pks(self, client: httpx.AsyncClient) -> List[str]:
        pks = []
        for mapping_name in self.config.property_names:
            response = await client.get(SCOPE_MAPPINGS_PATH, params={"name": mapping_name})
            _expect(response, f"scope mapping lookup for {mapping_name}", 200)
            results = response.json().get("results", [])
            if not results:
                raise ProviderError(f"Authentik scope mapping {mapping_name} not found")
            pks.append(results[0]["pk"])
        return pks

    def _provider_fields(self, config: OIDCClientConfig, secret: Optional[str]) -> dict:
        fields = {
            "client_type": _client_type(config),
            "redirect_uris": [{"matching_mode": "strict", "url": url} for url in config.redirect_urls],
        }
        if secret is not None:
            fields["client_secret"] = secret
        return fields

    async def create_client(self, name: str, config: OIDCClientConfig) -> SecretResult:
        """Create an OAuth2 provider and application, or reconcile an existing provider.

        An existing provider without a bound application gets one, so a client
        left half-provisioned by an earlier failure is completed.

        Raises:
            ProviderError: If any admin API call fails. When the application
                cannot be created for a new provider, that provider is deleted first.
        """
        try:
            async with self._http() as client:
                existing = await self._find_provider(client, name)
                if existing is not None:
                    return await self._reconcile(client, name, config, existing)

                secret = None if config.is_public else secrets.token_urlsafe(32)
                payload = {
                    "name": name,
                    "client_id": name,
                    "authorization_flow": await self._flow_pk(client, self.config.authentik_flow_auth),
                    "invalidation_flow": await self._flow_pk(client, self.config.authentik_flow_invalidation),
                    "property_mappings": await self._property_mapping_pks(client),
                    **self._provider_fields(config, secret),
                }
                response = await client.post(PROVIDERS_PATH, json=payload)
                _expect(response, f"provider creation for {name}", 201)
                provider_pk = response.json()["pk"]

                try:
                    await self._ensure_application(client, name, provider_pk)
                except (ProviderError, httpx.HTTPError):
                    await self._delete_provider(client, provider_pk)
                    raise

                logger.info(f"Created Authentik provider and application {name}")
                return SecretResult.created(secret)

        except httpx.HTTPError as e:
            raise ProviderError(f"Authentik request failed: {e}") from e

    async def _reconcile(
        self, client: httpx.AsyncClient, name: str, config: OIDCClientConfig, existing: dict
    ) -> SecretResult:
        current_secret = existing.get("client_secret") or None
        if _provider_matches(existing, config):
            secret = None if config.is_public else current_secret
        else:
            secret = None if config.is_public else (current_secret or secrets.token_urlsafe(32))
            response = await client.patch(
                f"{PROVIDERS_PATH}{existing['pk']}/", json=self._provider_fields(config, secret)
            )
            _expect(response, f"provider update for {name}", 200)
            logger.info(f"Updated drifted Authentik provider {name}")

        await self._ensure_application(client, name, existing["pk"])
        return SecretResult.already_existed(secret)

    async def _find_application(self, client: httpx.AsyncClient, name: str) -> Optional[dict]:
        slug = _slugify(name)
        response = await client.get(APPLICATIONS_PATH, params={"slug": slug})
        _expect(response, f"application lookup for {name}", 200)
        for application in response.json().get("results", []):
            if application.get("slug") == slug:
                return application
        return None

    async def _ensure_application(self, client: httpx.AsyncClient, name: str, provider_pk) -> None:
        """Make sure the application for this client exists and is bound to provider_pk."""
        application = await self._find_application(client, name)

        if application is None:
            response = await client.post(
                APPLICATIONS_PATH,
                json={"name": name, "slug": _slugify(name), "provider": provider_pk},
            )
            _expect(response, f"application creation for {name}", 201)
        elif application.get("provider") != provider_pk:
            response = await client.patch(
                f"{APPLICATIONS_PATH}{application['slug']}/", json={"provider": provider_pk}
            )
            _expect(response, f"application update for {name}", 200)
            logger.info(f"Rebound Authentik application {name} to provider {provider_pk}")

    async def _delete_provider(self, client: httpx.AsyncClient, provider_pk) -> None:
        """Roll back a provider whose application could not be created.

        Failure here is logged; the application error is what propagates.
        A provider left behind is completed by the next create_client call.
        """
        try:
            response = await client.delete(f"{PROVIDERS_PATH}{provider_pk}/")
            if response.status_code not in (204, 404):
                logger.warning(
                    f"Rollback of Authentik provider {provider_pk} returned {response.status_code}"
                )
        except httpx.HTTPError as e:
            logger.warning(f"Rollback of Authentik provider {provider_pk} failed: {e}")

    async def validate_client(self, name: str, config: OIDCClientConfig, secret: str) -> bool:
        """Check an Authentik client's provider, application binding and secret (read-only)."""
        try:
            async with self._http() as client:
                existing = await self._find_provider(client, name)
                if existing is None or not _provider_matches(existing, config):
                    return False
                application = await self._find_application(client, name)
        except httpx.HTTPError as e:
            raise ProviderError(f"Authentik request failed: {e}") from e

        if application is None or application.get("provider") != existing["pk"]:
            return False
        if config.is_public:
            return True

        current_secret = existing.get("client_secret")
        if not current_secret:
            return False
        return secrets.compare_digest(current_secret.encode(), secret.encode())
