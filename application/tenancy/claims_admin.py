"""Privileged claims rewrite for an already-provisioned identity."""

from __future__ import annotations

from typing import Any, Mapping

from adapters.db.base import StoreError
from adapters.db.tenant_store import TenantRepository
from adapters.db.users_store import ClaimsRepository
from app_platform.config.auth import AuthConfig
from domains.tenancy.exceptions import Forbidden, ProvisioningFailed, Unauthorized
from domains.tenancy.models import Claims, LEGACY_TENANT_CLAIM, ROLE_CLAIM, TENANT_CLAIM, VerifiedToken
from logging_lib import get_logger, scrub_identifier

from .provisioning import ProvisioningService, display_name_for


logger = get_logger("tenancy.claims_admin")


def parse_claims_body(body: Any) -> Claims:
    """Parse ``{"claims": {"companyId", "role"}}``; raise ValueError when malformed."""

    if not isinstance(body, Mapping):
        raise ValueError("Request body must be a JSON object")
    claims = body.get("claims")
    if not isinstance(claims, Mapping):
        raise ValueError("Field 'claims' must be an object")
    tenant_id = claims.get(LEGACY_TENANT_CLAIM) or claims.get(TENANT_CLAIM)
    role = claims.get(ROLE_CLAIM)
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ValueError("Field 'claims.companyId' must be a non-empty string")
    if not isinstance(role, str) or not role.strip():
        raise ValueError("Field 'claims.role' must be a non-empty string")
    return Claims(tenant_id=tenant_id.strip(), role=role.strip())


class ClaimsAdminService:
    def __init__(
        self,
        claims: ClaimsRepository,
        tenants: TenantRepository,
        provisioning: ProvisioningService,
        config: AuthConfig,
    ) -> None:
        self._claims = claims
        self._tenants = tenants
        self._provisioning = provisioning
        self._config = config

    def set_claims(self, token: VerifiedToken, requested: Claims) -> Claims:
        """Overwrite the caller's own claims after checking privileges."""

        if token is None:
            raise Unauthorized("A verified identity is required")

        current = token.claims
        if current is None or current.role not in self._config.admin_roles:
            raise Forbidden("Caller is not allowed to change claims")

        if requested.role not in self._config.allowed_roles:
            raise Forbidden(f"Role {requested.role!r} is not assignable")

        try:
            entitled = self._claims.entitled_tenant_ids(token.identity_id, current)
            if requested.tenant_id not in entitled or not self._tenants.exists(requested.tenant_id):
                raise Forbidden("Caller is not entitled to the requested tenant")

            base = self._claims.get_profile(token.identity_id) or {}
            tenant_ids = [t for t in base.get("tenantIds") or [] if isinstance(t, str)]
            for tenant_id in (current.tenant_id, requested.tenant_id):
                if tenant_id not in tenant_ids:
                    tenant_ids.append(tenant_id)

            profile = ClaimsRepository.build_profile(
                requested,
                email=token.email or base.get("email"),
                display_name=base.get("displayName") or display_name_for(token),
                base=base,
            )
            profile["tenantIds"] = tenant_ids
            self._claims.put(token.identity_id, profile)
        except StoreError as exc:
            raise ProvisioningFailed("Could not persist claims") from exc

        self._provisioning.publish(token.identity_id, requested)

        logger.info(
            "Claims updated",
            identity_hash=scrub_identifier(token.identity_id),
            tenant_id=requested.tenant_id,
            role=requested.role,
        )
        return requested
