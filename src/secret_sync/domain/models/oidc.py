"""OIDC Client Models

Purpose: Shapes exchanged between callers and identity-provider backends

OIDCClientConfig describes the client registration a caller wants to exist;
SecretResult is what provisioning hands back. Both are passed through the
provider layer untouched.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OIDCClientConfig(BaseModel):
    """Desired shape of an OIDC client registration."""

    model_config = ConfigDict(frozen=True)

    is_public: bool = Field(
        default=False,
        description="Public clients (SPAs, native apps) have no client secret",
    )
    redirect_urls: List[str] = Field(
        default_factory=list,
        description="Allowed redirect URIs, compared as a set",
        examples=[["https://app.example.com/oauth2/callback"]],
    )

    def redirects_match(self, redirect_urls) -> bool:
        """Check a backend's redirect URI list against the desired one (order-insensitive)."""
        return set(self.redirect_urls) == set(redirect_urls or [])


class SecretResultKind(str, Enum):
    """Outcome of a provisioning request"""

    CREATED = "created"
    ALREADY_EXISTED = "already_existed"
    ALREADY_VALID = "already_valid"


class SecretResult(BaseModel):
    """Credential bundle returned by provisioning.

    Attributes:
        kind: Whether the client was created, found, or the caller's secret was still valid
        secret: Client secret (None for public clients and for already_valid)
    """

    model_config = ConfigDict(frozen=True)

    kind: SecretResultKind
    secret: Optional[str] = None

    @classmethod
    def created(cls, secret: Optional[str]) -> "SecretResult":
        return cls(kind=SecretResultKind.CREATED, secret=secret)

    @classmethod
    def already_existed(cls, secret: Optional[str]) -> "SecretResult":
        return cls(kind=SecretResultKind.ALREADY_EXISTED, secret=secret)

    @classmethod
    def already_valid(cls) -> "SecretResult":
        return cls(kind=SecretResultKind.ALREADY_VALID)
