"""User profile repository; the durable source of tenant claims."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from domains.tenancy.exceptions import InvalidToken
from domains.tenancy.models import Claims, LEGACY_TENANT_CLAIM, ROLE_CLAIM, TENANT_CLAIM

from . import paths
from .record_store import BaseRecordStore, Record


logger = logging.getLogger(__name__)


class ClaimsRepository:
    """Profiles keyed by identity id under ``users/{uid}``."""

    def __init__(self, store: BaseRecordStore) -> None:
        self._store = store

    @property
    def store(self) -> BaseRecordStore:
        return self._store

    # Reads ----------------------------------------------------------------

    def get_profile(self, identity_id: str) -> Optional[Record]:
        return self._store.get(paths.user_path(identity_id))

    def get_claims(self, identity_id: str) -> Optional[Claims]:
        """Return the claims recorded for ``identity_id``, if any are valid."""

        profile = self.get_profile(identity_id)
        if profile is None:
            return None
        return self.claims_from_profile(profile)

    def find_by_email(self, email: str) -> Optional[Tuple[str, Record]]:
        """Find a profile by email; older records were keyed by address."""

        keyed = self._store.get(paths.user_path(email))
        if keyed is not None:
            return email, keyed

        matches = self._store.list(paths.USERS, filters={"email": email}, limit=1)
        return matches[0] if matches else None

    def entitled_tenant_ids(self, identity_id: str, claims: Optional[Claims] = None) -> List[str]:
        """Claims tenant first, then any extra tenants listed on the profile."""

        profile = self.get_profile(identity_id) or {}
        ordered: List[str] = []
        primary = claims or self.claims_from_profile(profile)
        if primary is not None:
            ordered.append(primary.tenant_id)
        for tenant_id in profile.get("tenantIds") or []:
            if isinstance(tenant_id, str) and tenant_id and tenant_id not in ordered:
                ordered.append(tenant_id)
        return ordered

    # Writes ---------------------------------------------------------------

    def put(self, identity_id: str, profile: Record) -> None:
        """Write the full profile record in one operation."""

        self._store.set(paths.user_path(identity_id), profile)

    # Helpers --------------------------------------------------------------

    @staticmethod
    def claims_from_profile(profile: Record) -> Optional[Claims]:
        try:
            return Claims.from_mapping(profile)
        except InvalidToken:
            logger.warning("Ignoring malformed claims on stored profile")
            return None

    @staticmethod
    def build_profile(
        claims: Claims,
        *,
        email: Optional[str],
        display_name: Optional[str],
        base: Optional[Record] = None,
    ) -> Dict[str, Any]:
        profile: Dict[str, Any] = dict(base or {})
        profile.update(
            {
                "displayName": display_name,
                "email": email,
                TENANT_CLAIM: claims.tenant_id,
                LEGACY_TENANT_CLAIM: claims.tenant_id,
                ROLE_CLAIM: claims.role,
            }
        )
        profile.setdefault("createdAt", datetime.now(timezone.utc).isoformat())
        return profile
