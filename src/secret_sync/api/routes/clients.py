"""Client Provisioning API Routes

Provides endpoints for creating and validating OIDC client registrations
on the configured identity provider.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from secret_sync.config.settings import Settings, get_settings
from secret_sync.core.provider import ClientProvisioningError, OIDCProvider, get_oidc_provider
from secret_sync.domain.models import (
    ClientSyncRequest,
    ClientValidateRequest,
    ClientValidateResponse,
    SecretResult,
)
from secret_sync.domain.services.client_sync import sync_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/clients", tags=["clients"])

# HTTP Bearer scheme (optional so that API_KEY can be disabled)
security = HTTPBearer(auto_error=False)


async def require_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check the shared API key when one is configured.

    Raises:
        HTTPException: 401 if the key is missing or wrong
    """
    if not settings.api_key:
        return

    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), settings.api_key.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_provider() -> OIDCProvider:
    """Active provider, or 503 when the service runs without one."""
    try:
        return get_oidc_provider()
    except RuntimeError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No OIDC provider configured",
        )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/{name}",
    response_model=SecretResult,
    dependencies=[Depends(require_api_key)],
)
async def provision_client(
    request: ClientSyncRequest,
    name: str = Path(..., min_length=1, max_length=255),
    provider: OIDCProvider = Depends(get_provider),
):
    """Create a client registration, or confirm the caller's secret is still good.

    **Example Request**:
    ```json
    {
      "config": {"is_public": false, "redirect_urls": ["https://app.example.com/callback"]},
      "secret": "previously-issued-secret"
    }
    ```

    **Example Response**:
    ```json
    {"kind": "created", "secret": "5a2b..."}
    ```

    Raises:
        HTTPException: 502 with a generic message if the provider call fails
    """
    try:
        return await sync_client(provider, name, request.config, request.secret)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ClientProvisioningError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.post(
    "/{name}/validate",
    response_model=ClientValidateResponse,
    dependencies=[Depends(require_api_key)],
)
async def validate_client(
    request: ClientValidateRequest,
    name: str = Path(..., min_length=1, max_length=255),
    provider: OIDCProvider = Depends(get_provider),
):
    """Check that a client exists with the given secret and configuration.

    A mismatch is reported as {"valid": false}; only provider failures are errors.
    """
    try:
        valid = await provider.validate_client(name, request.secret, request.config)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ClientProvisioningError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)

    return ClientValidateResponse(valid=valid)
