"""Domain models for Secret Sync"""

from secret_sync.domain.models.api_clients import (
    ClientSyncRequest,
    ClientValidateRequest,
    ClientValidateResponse,
    HealthResponse,
)
from secret_sync.domain.models.oidc import (
    OIDCClientConfig,
    SecretResult,
    SecretResultKind,
)

__all__ = [
    # OIDC models
    "OIDCClientConfig",
    "SecretResult",
    "SecretResultKind",
    # API models
    "ClientSyncRequest",
    "ClientValidateRequest",
    "ClientValidateResponse",
    "HealthResponse",
]
