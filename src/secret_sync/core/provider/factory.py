"""Identity-provider factory.

Selects the active backend at startup and holds it for the process lifetime.

Selection rules:
- OIDC_PROVIDER set: only that backend's configuration is parsed.
- OIDC_PROVIDER unset: backend configurations are probed in PROVIDER_BACKENDS
  order (keycloak, then authentik) and the first that parses wins. A deployment
  whose environment satisfies both schemas therefore always gets keycloak.

A schema that fails to parse is not an error while probing; its diagnostic is
logged so operators can tell "not configured" from "configured wrong".
"""

import logging
from typing import Dict, Optional, Tuple, Type

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from .authentik import AuthentikBackend, AuthentikConfig
from .dispatcher import OIDCProvider
from .keycloak import KeycloakBackend, KeycloakConfig
from .provider import OIDCBackend

logger = logging.getLogger(__name__)

# Probing priority is the insertion order
PROVIDER_BACKENDS: Dict[str, Tuple[Type[BaseSettings], Type[OIDCBackend]]] = {
    "keycloak": (KeycloakConfig, KeycloakBackend),
    "authentik": (AuthentikConfig, AuthentikBackend),
}


def describe_validation_error(error: ValidationError) -> str:
    """Summarize a configuration parse failure by field and reason.

    Input values are left out; pydantic would otherwise echo every parsed
    variable, secrets included.
    """
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']).upper()}: {err['msg']}"
        for err in error.errors()
    )


# Global provider instance (initialized once at startup)
_provider_instance: Optional[OIDCProvider] = None
_initialized = False


def try_init(provider_kind: Optional[str] = None, timeout: float = 10.0) -> Optional[OIDCProvider]:
    """Build an OIDCProvider from the environment.

    Args:
        provider_kind: Explicit backend to use; probe all backends when None
        timeout: Backend request timeout in seconds

    Returns:
        OIDCProvider for the selected backend, or None if no schema parsed

    Raises:
        ValueError: If provider_kind is not a known backend
    """
    if provider_kind is None:
        candidates = list(PROVIDER_BACKENDS)
    else:
        kind = provider_kind.lower()
        if kind not in PROVIDER_BACKENDS:
            raise ValueError(
                f"Unknown OIDC_PROVIDER: {provider_kind}. "
                f"Valid options: {', '.join(PROVIDER_BACKENDS)}"
            )
        candidates = [kind]

    for kind in candidates:
        config_cls, backend_cls = PROVIDER_BACKENDS[kind]
        try:
            config = config_cls()
        except ValidationError as e:
            logger.warning(f"Provider {kind} is not configured: {describe_validation_error(e)}")
            continue

        logger.info(f"Using OIDC provider: {kind}")
        return OIDCProvider(backend_cls(config, timeout=timeout))

    return None


def init_oidc_provider(provider_kind: Optional[str] = None, timeout: float = 10.0) -> Optional[OIDCProvider]:
    """Select the process-wide provider on first call and return it afterwards.

    Later calls never re-select, so the active backend cannot change once chosen,
    and a first call that finds nothing leaves the process without a provider.
    """
    global _provider_instance, _initialized

    if not _initialized:
        _initialized = True
        _provider_instance = try_init(provider_kind, timeout=timeout)
        if _provider_instance is None:
            logger.error("No OIDC provider configured")

    return _provider_instance


def get_oidc_provider() -> OIDCProvider:
    """Get the active provider (FastAPI dependency).

    Raises:
        RuntimeError: If no provider was initialized
    """
    if _provider_instance is None:
        raise RuntimeError("OIDC provider is not initialized")
    return _provider_instance


def reset_provider() -> None:
    """Reset the global provider instance (for testing)."""
    global _provider_instance, _initialized
    _provider_instance = None
    _initialized = False
