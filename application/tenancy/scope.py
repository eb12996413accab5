"""Active tenant selection for identities entitled to several tenants."""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Dict, List, Optional, Protocol

from adapters.db.tenant_store import TenantRepository
from adapters.db.users_store import ClaimsRepository
from domains.tenancy.exceptions import Forbidden, Unauthorized
from domains.tenancy.models import Tenant, TenantContext
from logging_lib import get_logger, scrub_identifier

from .session import SessionResolver, SessionSnapshot, SessionState


logger = get_logger("tenancy.scope")


class SelectionStore(Protocol):
    def get(self, identity_id: str) -> Optional[str]: ...
    def set(self, identity_id: str, tenant_id: str) -> None: ...
    def clear(self, identity_id: str) -> None: ...


class InMemorySelectionStore:
    """Remembers the last selected tenant per identity."""

    def __init__(self) -> None:
        self._selected: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, identity_id: str) -> Optional[str]:
        with self._lock:
            return self._selected.get(identity_id)

    def set(self, identity_id: str, tenant_id: str) -> None:
        with self._lock:
            self._selected[identity_id] = tenant_id

    def clear(self, identity_id: str) -> None:
        with self._lock:
            self._selected.pop(identity_id, None)


ScopeListener = Callable[[Optional[TenantContext]], None]


class TenantScopeSelector:
    """Pins the tenant every scoped operation of the session uses.

    Without an explicit selection the tenant carried by the session claims is
    active, which makes the single-tenant case implicit.
    """

    def __init__(
        self,
        resolver: SessionResolver,
        tenants: TenantRepository,
        claims: ClaimsRepository,
        selection_store: Optional[SelectionStore] = None,
    ) -> None:
        self._resolver = resolver
        self._tenants = tenants
        self._claims = claims
        self._store = selection_store or InMemorySelectionStore()
        self._identity_id: Optional[str] = None
        self._selected: Optional[str] = None
        self._entitled: Optional[List[str]] = None
        self._listeners: List[ScopeListener] = []
        self._unsubscribe = resolver.subscribe(self._on_session)

    # Session tracking ------------------------------------------------------

    def _on_session(self, snapshot: SessionSnapshot) -> None:
        identity_id = snapshot.identity.id if snapshot.identity else None
        if snapshot.state is SessionState.UNAUTHENTICATED:
            identity_id = None

        if identity_id != self._identity_id and snapshot.state in (
            SessionState.READY,
            SessionState.UNAUTHENTICATED,
            SessionState.AUTHENTICATING,
        ):
            if self._identity_id is not None:
                logger.debug("Identity changed; dropping tenant selection")
            self._identity_id = identity_id
            self._selected = None
            self._entitled = None

    def subscribe(self, listener: ScopeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()

    # Queries ---------------------------------------------------------------

    def _ready_snapshot(self) -> SessionSnapshot:
        snapshot = self._resolver.snapshot
        if snapshot.state is not SessionState.READY or snapshot.identity is None:
            raise Unauthorized("Session is not ready")
        return snapshot

    def _entitled_ids(self, snapshot: SessionSnapshot) -> List[str]:
        ids = self._claims.entitled_tenant_ids(snapshot.identity.id, snapshot.claims)
        return [tenant.id for tenant in self._tenants.get_many(ids)]

    async def list_entitled_tenants(self) -> List[Tenant]:
        """Tenants the signed-in identity may select, claims tenant first."""

        snapshot = self._ready_snapshot()
        ids = await asyncio.to_thread(self._claims.entitled_tenant_ids, snapshot.identity.id, snapshot.claims)
        tenants = await asyncio.to_thread(self._tenants.get_many, ids)
        self._entitled = [tenant.id for tenant in tenants]
        return tenants

    @property
    def active_tenant_id(self) -> Optional[str]:
        snapshot = self._resolver.snapshot
        if snapshot.state is not SessionState.READY:
            return None
        return self._selected or snapshot.tenant_id

    def context(self) -> Optional[TenantContext]:
        snapshot = self._resolver.snapshot
        tenant_id = self.active_tenant_id
        if tenant_id is None or snapshot.identity is None:
            return None
        return TenantContext(
            identity_id=snapshot.identity.id,
            tenant_id=tenant_id,
            role=snapshot.role or "",
            entitled=tuple(self._entitled or ()),
        )

    # Commands --------------------------------------------------------------

    async def select(self, tenant_id: str) -> TenantContext:
        """Pin ``tenant_id`` for the rest of the session."""

        snapshot = self._ready_snapshot()
        entitled = await asyncio.to_thread(self._entitled_ids, snapshot)
        if tenant_id not in entitled:
            logger.warning(
                "Tenant selection refused",
                identity_hash=scrub_identifier(snapshot.identity.id),
                tenant_id=tenant_id,
            )
            raise Forbidden("Identity is not entitled to this tenant")

        self._entitled = entitled
        self._selected = tenant_id
        self._store.set(snapshot.identity.id, tenant_id)

        context = self.context()
        for listener in list(self._listeners):
            listener(context)
        return context

    async def restore(self) -> Optional[TenantContext]:
        """Re-apply the identity's remembered selection if still entitled."""

        snapshot = self._ready_snapshot()
        remembered = self._store.get(snapshot.identity.id)
        if remembered is None or remembered == self._selected:
            return self.context()

        entitled = await asyncio.to_thread(self._entitled_ids, snapshot)
        if remembered in entitled:
            self._entitled = entitled
            self._selected = remembered
            context = self.context()
            for listener in list(self._listeners):
                listener(context)
            return context

        self._store.clear(snapshot.identity.id)
        return self.context()

    def forget(self) -> None:
        """Drop the remembered selection for the signed-in identity."""

        if self._identity_id is not None:
            self._store.clear(self._identity_id)
        self._selected = None
