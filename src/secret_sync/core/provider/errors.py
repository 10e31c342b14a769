"""Caller-facing provisioning errors.

Backend failures are collapsed into one of two fixed messages before they
leave OIDCProvider. The detailed cause is logged and nothing else.
"""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class ClientErrorKind(str, Enum):
    """Public error messages, keyed by operation"""

    CREATE_FAILED = "Error creating OIDC client"
    VALIDATE_FAILED = "Failed to validate client. See upstream logs."


class ClientProvisioningError(Exception):
    """Sanitized provisioning failure.

    str(error) is always exactly the message of its kind.
    """

    def __init__(self, kind: ClientErrorKind):
        super().__init__(kind.value)
        self.kind = kind

    @property
    def message(self) -> str:
        return self.kind.value


def sanitize_error(kind: ClientErrorKind, context: str, error: Exception) -> ClientProvisioningError:
    """Log a backend failure in full and return its public replacement.

    Args:
        kind: Which public message the caller should see
        context: Operator-facing description (e.g. "Failed to create client app-1")
        error: Original backend exception

    Returns:
        ClientProvisioningError to raise in place of the original
    """
    logger.error(f"{context}: {error}", exc_info=error)
    return ClientProvisioningError(kind)
