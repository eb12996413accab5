"""Tenant repository."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from domains.tenancy.models import Tenant, TenantSettings

from . import paths
from .record_store import BaseRecordStore


class TenantRepository:
    """Tenant documents under ``tenants/{tenantId}``."""

    def __init__(self, store: BaseRecordStore) -> None:
        self._store = store

    def get(self, tenant_id: str) -> Optional[Tenant]:
        data = self._store.get(paths.tenant_path(tenant_id))
        if data is None:
            return None
        return Tenant(
            id=tenant_id,
            name=data.get("name") or tenant_id,
            settings=TenantSettings.from_dict(data.get("settings")),
        )

    def exists(self, tenant_id: str) -> bool:
        return self.get(tenant_id) is not None

    def get_many(self, tenant_ids: Iterable[str]) -> List[Tenant]:
        """Return existing tenants in the order requested."""

        tenants = []
        for tenant_id in tenant_ids:
            tenant = self.get(tenant_id)
            if tenant is not None:
                tenants.append(tenant)
        return tenants

    @staticmethod
    def new_tenant_id() -> str:
        return uuid.uuid4().hex[:20]

    @staticmethod
    def build_record(name: str, settings: TenantSettings) -> Dict[str, Any]:
        return {
            "name": name,
            "settings": settings.to_dict(),
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }
