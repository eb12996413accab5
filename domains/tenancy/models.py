"""Tenancy domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import InvalidToken

TENANT_CLAIM = "tenantId"
LEGACY_TENANT_CLAIM = "companyId"
ROLE_CLAIM = "role"


@dataclass(frozen=True)
class Identity:
    """Opaque identity issued by the identity provider."""

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Claims:
    """Authorization claims carried inside a token."""

    tenant_id: str
    role: str

    def to_custom_claims(self) -> Dict[str, str]:
        return {
            TENANT_CLAIM: self.tenant_id,
            LEGACY_TENANT_CLAIM: self.tenant_id,
            ROLE_CLAIM: self.role,
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> Optional["Claims"]:
        """Parse claims out of a decoded token or profile.

        Returns None when neither tenant nor role is present. A partial or
        mistyped pair raises InvalidToken so callers never see half-built
        claims.
        """

        tenant = payload.get(TENANT_CLAIM)
        if tenant is None:
            tenant = payload.get(LEGACY_TENANT_CLAIM)
        role = payload.get(ROLE_CLAIM)

        if tenant is None and role is None:
            return None
        if tenant is None or role is None:
            raise InvalidToken("Token carries partial authorization claims")
        if not isinstance(tenant, str) or not isinstance(role, str) or not tenant or not role:
            raise InvalidToken("Token claims must be non-empty strings")
        return cls(tenant_id=tenant, role=role)


@dataclass(frozen=True)
class VerifiedToken:
    """Result of verifying a raw bearer credential."""

    identity_id: str
    claims: Optional[Claims] = None
    email: Optional[str] = None
    name: Optional[str] = None
    raw_claims: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def identity(self) -> Identity:
        return Identity(id=self.identity_id, email=self.email, display_name=self.name)


@dataclass(frozen=True)
class TenantSettings:
    tracking_prefix: str = "LG"
    tracking_base_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"codigoPrefixo": self.tracking_prefix, "linkBaseRastreio": self.tracking_base_url}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "TenantSettings":
        data = data or {}
        return cls(
            tracking_prefix=data.get("codigoPrefixo") or "LG",
            tracking_base_url=data.get("linkBaseRastreio"),
        )


@dataclass(frozen=True)
class Tenant:
    """A store/company that owns its own records."""

    id: str
    name: str
    settings: TenantSettings = field(default_factory=TenantSettings)


@dataclass(frozen=True)
class TenantContext:
    """Resolved identity, tenant and role handed to protected code."""

    identity_id: str
    tenant_id: str
    role: str
    entitled: Tuple[str, ...] = ()

    def key(self) -> Tuple[str, str]:
        return (self.identity_id, self.tenant_id)
