"""Uniform client provisioning over the active identity-provider backend."""

import logging

from secret_sync.core.provider.errors import ClientErrorKind, sanitize_error
from secret_sync.core.provider.provider import OIDCBackend
from secret_sync.domain.models.oidc import OIDCClientConfig, SecretResult

logger = logging.getLogger(__name__)


class OIDCProvider:
    """The process-wide identity provider.

    Wraps exactly one OIDCBackend, chosen at startup and never replaced.
    Holds no mutable state, so any number of requests may call it concurrently.
    Every backend failure is logged and re-raised as ClientProvisioningError
    carrying one of two fixed messages.
    """

    def __init__(self, backend: OIDCBackend):
        self._backend = backend

    @property
    def kind(self) -> str:
        """Name of the active backend (keycloak, authentik)"""
        return self._backend.kind

    async def create_client(self, name: str, oidc_client_config: OIDCClientConfig) -> SecretResult:
        """Create (or reconcile) a client registration on the active backend.

        Args:
            name: Unique client identifier (non-empty)
            oidc_client_config: Desired client shape, passed through unchanged

        Returns:
            The backend's SecretResult

        Raises:
            ValueError: If name is empty
            ClientProvisioningError: If the backend call fails for any reason
        """
        if not name:
            raise ValueError("Client name must not be empty")

        try:
            return await self._backend.create_client(name, oidc_client_config)
        except Exception as e:
            raise sanitize_error(
                ClientErrorKind.CREATE_FAILED, f"Failed to create client {name} on {self.kind}", e
            ) from None

    async def validate_client(self, name: str, secret: str, oidc_client_config: OIDCClientConfig) -> bool:
        """Check a client's existence, secret and configuration on the active backend.

        A mismatch is a False result, not an error.

        Raises:
            ValueError: If name is empty
            ClientProvisioningError: If the backend cannot be queried
        """
        if not name:
            raise ValueError("Client name must not be empty")

        try:
            return await self._backend.validate_client(name, oidc_client_config, secret)
        except Exception as e:
            raise sanitize_error(
                ClientErrorKind.VALIDATE_FAILED, f"Failed to validate client {name} on {self.kind}", e
            ) from None

    def __repr__(self) -> str:
        return f"OIDCProvider(kind={self.kind!r})"
