"""Client Sync Service

Turns a caller's provisioning request into provider calls: a secret the
caller already holds is re-validated first, and a new one is only issued
when it is missing or no longer good.
"""

import logging
from typing import Optional

from secret_sync.core.provider import OIDCProvider
from secret_sync.domain.models.oidc import OIDCClientConfig, SecretResult

logger = logging.getLogger(__name__)


async def sync_client(
    provider: OIDCProvider,
    name: str,
    config: OIDCClientConfig,
    current_secret: Optional[str] = None,
) -> SecretResult:
    """Ensure a client registration exists and return its credentials.

    Args:
        provider: Active identity provider
        name: Client identifier
        config: Desired client shape
        current_secret: Secret the caller currently holds, if any

    Returns:
        already_valid if current_secret still validates, otherwise the result of create_client

    Raises:
        ClientProvisioningError: If validation or creation fails on the backend
    """
    if current_secret is not None:
        if await provider.validate_client(name, current_secret, config):
            logger.info(f"Client {name} is already valid")
            return SecretResult.already_valid()
        logger.info(f"Client {name} failed validation, provisioning")

    return await provider.create_client(name, config)
