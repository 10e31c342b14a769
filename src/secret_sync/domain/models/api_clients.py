"""Client Provisioning API Models

Request/response bodies for the /api/v1/clients endpoints.
"""

from typing import Optional

from pydantic import BaseModel, Field

from secret_sync.domain.models.oidc import OIDCClientConfig


class ClientSyncRequest(BaseModel):
    """Request model for creating (or re-validating) a client

    When the caller already holds a secret it is checked first and
    returned as already_valid if the registration has not drifted.
    """

    config: OIDCClientConfig
    secret: Optional[str] = Field(
        None,
        description="Secret the caller currently holds for this client",
    )


class ClientValidateRequest(BaseModel):
    """Request model for validating a client registration"""

    config: OIDCClientConfig
    secret: str = Field(..., description="Secret to check against the backend")


class ClientValidateResponse(BaseModel):
    """Validation outcome"""

    valid: bool


class HealthResponse(BaseModel):
    """Service health with the active identity-provider backend"""

    status: str
    service: str
    version: str
    provider: Optional[str] = None
