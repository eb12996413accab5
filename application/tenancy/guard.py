"""Gate in front of protected functionality."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Optional

from domains.tenancy.models import TenantContext
from logging_lib import get_logger, scrub_identifier

from .scope import TenantScopeSelector
from .session import SessionResolver, SessionSnapshot, SessionState


logger = get_logger("tenancy.guard")


class GuardOutcome(str, Enum):
    LOADING = "loading"
    REDIRECT = "redirect"
    MOUNTED = "mounted"


class AuthorizationGuard:
    """Mounts wrapped functionality once the session is ready.

    While the session is loading nothing is mounted. When it settles
    unauthenticated the guard unmounts whatever it mounted before and calls
    ``on_redirect``. When it is ready the tenant context is computed and
    ``mount`` runs once per identity and tenant; a new identity or tenant
    unmounts the previous context first.
    """

    def __init__(
        self,
        resolver: SessionResolver,
        mount: Callable[[TenantContext], Any],
        on_redirect: Callable[[], None],
        *,
        scope: Optional[TenantScopeSelector] = None,
        on_unmount: Optional[Callable[[TenantContext], None]] = None,
    ) -> None:
        self._resolver = resolver
        self._mount = mount
        self._on_redirect = on_redirect
        self._on_unmount = on_unmount
        self._scope = scope

        self._outcome = GuardOutcome.LOADING
        self._context: Optional[TenantContext] = None
        self._mounted: Any = None
        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def outcome(self) -> GuardOutcome:
        return self._outcome

    @property
    def context(self) -> Optional[TenantContext]:
        """Tenant context supplied downstream; None unless mounted."""

        return self._context if self._outcome is GuardOutcome.MOUNTED else None

    @property
    def mounted(self) -> Any:
        return self._mounted

    def start(self) -> None:
        if self._unsubscribers:
            return
        self._unsubscribers.append(self._resolver.subscribe(self._on_session))
        if self._scope is not None:
            self._unsubscribers.append(self._scope.subscribe(lambda _ctx: self._on_session(self._resolver.snapshot)))

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._unmount()

    def _resolve_context(self, snapshot: SessionSnapshot) -> Optional[TenantContext]:
        if self._scope is not None:
            return self._scope.context()
        if snapshot.identity is None or snapshot.tenant_id is None:
            return None
        return TenantContext(
            identity_id=snapshot.identity.id,
            tenant_id=snapshot.tenant_id,
            role=snapshot.role or "",
        )

    def _unmount(self) -> None:
        if self._context is not None and self._on_unmount is not None:
            self._on_unmount(self._context)
        self._context = None
        self._mounted = None

    def _on_session(self, snapshot: SessionSnapshot) -> None:
        if snapshot.state is SessionState.UNAUTHENTICATED:
            self._unmount()
            if self._outcome is not GuardOutcome.REDIRECT:
                self._outcome = GuardOutcome.REDIRECT
                self._on_redirect()
            return

        if snapshot.is_loading:
            # a different identity invalidates the supplied context right away
            if self._context is not None and (
                snapshot.identity is None or snapshot.identity.id != self._context.identity_id
            ):
                self._unmount()
            self._outcome = GuardOutcome.LOADING
            return

        context = self._resolve_context(snapshot)
        if context is None:
            self._unmount()
            self._outcome = GuardOutcome.LOADING
            return

        if self._context is not None and self._context.key() == context.key():
            self._context = context
            self._outcome = GuardOutcome.MOUNTED
            return

        self._unmount()
        self._context = context
        self._outcome = GuardOutcome.MOUNTED
        logger.info(
            "Mounting protected view",
            identity_hash=scrub_identifier(context.identity_id),
            tenant_id=context.tenant_id,
        )
        self._mounted = self._mount(context)
