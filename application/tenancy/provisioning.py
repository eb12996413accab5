"""First-login provisioning.

Maps a verified identity with no claims to a tenant and role, persists the
assignment as one full profile record and publishes it as custom claims so
later tokens carry it.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Mapping, Optional

from adapters.db import paths
from adapters.db.base import RecordExistsError, StoreError
from adapters.db.record_store import BaseRecordStore
from adapters.db.tenant_store import TenantRepository
from adapters.db.users_store import ClaimsRepository
from adapters.providers.base import IdentityProvider
from adapters.providers.token_verifier import TokenVerifier
from app_platform.config.auth import AuthConfig
from domains.tenancy.exceptions import AssignmentError, ProvisioningFailed, Unauthorized
from domains.tenancy.models import Claims, TenantSettings, VerifiedToken
from logging_lib import get_logger, scrub_identifier


logger = get_logger("tenancy.provisioning")

DEFAULT_DISPLAY_NAME = "Novo Usuário"


def display_name_for(token: VerifiedToken) -> str:
    if token.name and token.name.strip():
        return token.name.strip()
    if token.email and "@" in token.email:
        local = token.email.split("@", 1)[0].strip()
        if local:
            return local
    return DEFAULT_DISPLAY_NAME


class ProvisioningService:
    """Assigns a tenant and role to an identity exactly once."""

    def __init__(
        self,
        store: BaseRecordStore,
        claims: ClaimsRepository,
        tenants: TenantRepository,
        provider: IdentityProvider,
        config: AuthConfig,
    ) -> None:
        self._store = store
        self._claims = claims
        self._tenants = tenants
        self._provider = provider
        self._config = config

    def provision(self, token: Optional[VerifiedToken]) -> Claims:
        """Return the identity's claims, creating and publishing them if needed.

        Idempotent: a token that already carries claims is returned as is,
        and a stored assignment is republished without further writes.
        """

        if token is None or not token.identity_id:
            raise Unauthorized("A verified identity is required")

        identity_hash = scrub_identifier(token.identity_id)

        if token.claims is not None:
            logger.debug("Token already carries claims", identity_hash=identity_hash)
            return token.claims

        try:
            claims, source = self._assign(token)
        except StoreError as exc:
            logger.error(
                "Provisioning persistence failed",
                identity_hash=identity_hash,
                error_code=exc.error_code,
            )
            raise ProvisioningFailed("Could not persist tenant assignment") from exc

        self.publish(token.identity_id, claims)

        logger.info(
            "Identity provisioned",
            identity_hash=identity_hash,
            tenant_id=claims.tenant_id,
            role=claims.role,
            source=source,
        )
        return claims

    def publish(self, identity_id: str, claims: Claims) -> None:
        """Write ``claims`` into the identity provider's custom claims."""

        try:
            self._provider.set_custom_claims(identity_id, claims.to_custom_claims())
        except Exception as exc:  # noqa: BLE001 - provider SDKs raise assorted types
            logger.error(
                "Publishing custom claims failed",
                identity_hash=scrub_identifier(identity_id),
                error=type(exc).__name__,
            )
            raise ProvisioningFailed("Could not publish claims to the identity provider") from exc

    # Assignment policy -----------------------------------------------------

    def _assign(self, token: VerifiedToken) -> tuple[Claims, str]:
        uid = token.identity_id

        stored = self._claims.get_claims(uid)
        if stored is not None:
            return stored, "profile"

        email = (token.email or "").strip()
        if not email:
            raise AssignmentError("Email is required to assign a tenant")

        name = display_name_for(token)

        legacy = self._claims.find_by_email(email)
        if legacy is not None and legacy[0] != uid:
            legacy_id, legacy_profile = legacy
            legacy_claims = ClaimsRepository.claims_from_profile(legacy_profile)
            if legacy_claims is not None:
                profile = ClaimsRepository.build_profile(
                    legacy_claims,
                    email=email,
                    display_name=legacy_profile.get("displayName") or name,
                    base=legacy_profile,
                )
                self._claims.put(uid, profile)
                logger.info(
                    "Migrated profile keyed by email",
                    identity_hash=scrub_identifier(uid),
                    legacy_hash=scrub_identifier(legacy_id),
                )
                return legacy_claims, "legacy"

        pinned = self._config.pinned_assignment(email)
        if pinned is not None:
            tenant_id, role = pinned
            return self._create(uid, Claims(tenant_id, role), email=email, name=name), "pinned"

        claims = Claims(self._tenants.new_tenant_id(), self._config.default_role)
        return self._create(uid, claims, email=email, name=name), "new_tenant"

    def _create(self, uid: str, claims: Claims, *, email: str, name: str) -> Claims:
        """Create the profile (and the tenant when missing) in one batch."""

        profile = ClaimsRepository.build_profile(claims, email=email, display_name=name)
        records: Dict[str, Mapping] = {paths.user_path(uid): profile}

        if not self._tenants.exists(claims.tenant_id):
            settings = TenantSettings(
                tracking_prefix=self._config.tracking_prefix,
                tracking_base_url=self._config.tracking_base_url,
            )
            records[paths.tenant_path(claims.tenant_id)] = TenantRepository.build_record(
                f"Empresa de {name}", settings
            )

        try:
            self._store.create_all(records)
            return claims
        except RecordExistsError:
            pass

        # lost a race: another provisioner wrote the profile first
        winner = self._claims.get_claims(uid)
        if winner is not None:
            logger.info("Concurrent provisioning resolved to existing profile", identity_hash=scrub_identifier(uid))
            return winner

        # a stored profile without valid claims is rebuilt, not kept
        if self._claims.get_profile(uid) is not None:
            return self._rebuild_profile(uid, claims, records, email=email, name=name)

        # the pinned tenant appeared concurrently; retry with the profile alone
        if len(records) > 1 and self._tenants.exists(claims.tenant_id):
            try:
                self._store.create_all({paths.user_path(uid): profile})
                return claims
            except RecordExistsError:
                winner = self._claims.get_claims(uid)
                if winner is not None:
                    return winner

        raise ProvisioningFailed("Tenant assignment conflicted with an existing record")

    def _rebuild_profile(
        self,
        uid: str,
        claims: Claims,
        records: Mapping[str, Mapping],
        *,
        email: str,
        name: str,
    ) -> Claims:
        """Overwrite a profile that exists but carries no valid claims."""

        tenant_path = paths.tenant_path(claims.tenant_id)
        if tenant_path in records:
            try:
                self._store.create_all({tenant_path: records[tenant_path]})
            except RecordExistsError:
                pass

        def _rebuild(current: Optional[Mapping]) -> Mapping:
            if current is not None and ClaimsRepository.claims_from_profile(current) is not None:
                return current
            base = dict(current or {})
            return ClaimsRepository.build_profile(
                claims,
                email=email,
                display_name=base.get("displayName") or name,
                base=base,
            )

        profile = self._store.transact(paths.user_path(uid), _rebuild)
        logger.warning("Rebuilt stored profile without valid claims", identity_hash=scrub_identifier(uid))
        return ClaimsRepository.claims_from_profile(profile) or claims


class LocalProvisioner:
    """In-process provisioner: verify the raw token then run the service."""

    def __init__(self, verifier: TokenVerifier, service: ProvisioningService) -> None:
        self._verifier = verifier
        self._service = service

    async def provision(self, raw_token: str) -> Claims:
        token = await asyncio.to_thread(self._verifier.verify, raw_token)
        return await asyncio.to_thread(self._service.provision, token)
