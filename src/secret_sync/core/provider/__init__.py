"""Identity-provider abstraction layer.

Provisions OIDC client registrations on exactly one backend chosen at startup:
- keycloak: Keycloak admin REST API
- authentik: Authentik API (OAuth2 provider + application)
"""

from .dispatcher import OIDCProvider
from .errors import ClientErrorKind, ClientProvisioningError
from .factory import get_oidc_provider, init_oidc_provider, reset_provider, try_init
from .provider import OIDCBackend, ProviderError

__all__ = [
    "OIDCProvider",
    "OIDCBackend",
    "ProviderError",
    "ClientErrorKind",
    "ClientProvisioningError",
    "try_init",
    "init_oidc_provider",
    "get_oidc_provider",
    "reset_provider",
]
