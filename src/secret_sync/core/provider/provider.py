"""Abstract identity-provider backend interface.

This module defines the contract that every identity-provider backend must implement.
Exactly one backend is selected at startup (see factory.py) and wrapped by
OIDCProvider, which is the only thing request handlers talk to.
"""

from abc import ABC, abstractmethod
from typing import Optional

from secret_sync.domain.models.oidc import OIDCClientConfig, SecretResult


class ProviderError(Exception):
    """A backend admin API call failed.

    Carries backend detail (endpoint, HTTP status, response body) that is only
    ever logged; OIDCProvider never lets it reach callers.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class OIDCBackend(ABC):
    """Abstract interface for identity-provider backends.

    Implementation is chosen at startup via OIDC_PROVIDER, or by probing each
    backend's configuration schema when OIDC_PROVIDER is unset.

    Example:
        # Keycloak
        OIDC_PROVIDER=keycloak
        KEYCLOAK_URL=https://keycloak.example.com
        KEYCLOAK_ID=secret-sync
        KEYCLOAK_SECRET=xxx

        # Authentik
        OIDC_PROVIDER=authentik
        AUTHENTIK_URL=https://authentik.example.com
        AUTHENTIK_TOKEN=xxx
    """

    #: Registry key and log label for this backend
    kind: str

    @abstractmethod
    async def create_client(self, name: str, config: OIDCClientConfig) -> SecretResult:
        """Create a client registration, or reconcile an existing one.

        Args:
            name: Unique client identifier on the backend
            config: Desired client shape

        Returns:
            SecretResult with the client's secret

        Raises:
            ProviderError: If any admin API call fails
        """
        pass

    @abstractmethod
    async def validate_client(self, name: str, config: OIDCClientConfig, secret: str) -> bool:
        """Check that a client exists with this secret and configuration.

        Must not modify backend state.

        Args:
            name: Client identifier
            config: Expected client shape
            secret: Secret to compare (ignored for public clients)

        Returns:
            True if existence, secret and configuration all match, False otherwise

        Raises:
            ProviderError: If the backend cannot be queried
        """
        pass
