"""Client-side session state machine.

The resolver owns the session. It listens to credential-change notifications
from the identity provider, verifies the current token, drives at most one
provisioning round-trip per identity and publishes immutable snapshots to
subscribers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

from adapters.providers.token_verifier import TokenVerifier
from domains.tenancy.exceptions import ProvisioningFailed, TenancyError
from domains.tenancy.models import Claims, Identity, VerifiedToken
from logging_lib import get_logger, scrub_identifier


logger = get_logger("tenancy.session")


class SessionState(str, Enum):
    UNKNOWN = "unknown"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    PROVISIONING = "provisioning"
    READY = "ready"


SETTLED_STATES = frozenset({SessionState.READY, SessionState.UNAUTHENTICATED})


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session handed to consumers."""

    state: SessionState = SessionState.UNKNOWN
    identity: Optional[Identity] = None
    tenant_id: Optional[str] = None
    role: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def is_loading(self) -> bool:
        return self.state not in SETTLED_STATES

    @property
    def is_provisioning(self) -> bool:
        return self.state is SessionState.PROVISIONING

    @property
    def claims(self) -> Optional[Claims]:
        if self.tenant_id is None or self.role is None:
            return None
        return Claims(tenant_id=self.tenant_id, role=self.role)


SessionListener = Callable[[SessionSnapshot], None]


class CredentialSource(Protocol):
    """Client side of the identity provider."""

    def on_credential_change(self, listener: Callable[[Optional[Identity]], None]) -> Callable[[], None]: ...

    async def get_token(self, identity_id: str, force_refresh: bool = False) -> str: ...


class Provisioner(Protocol):
    async def provision(self, raw_token: str) -> object: ...


class SessionResolver:
    """Resolves ``{identity, tenantId, role}`` for the signed-in identity.

    Must be started and driven from a single event loop. Notifications for an
    identity whose resolution is already in flight join that flight instead of
    starting another. A notification for a different identity cancels the
    running flight and bumps the epoch, so late results are dropped.
    """

    def __init__(self, credentials: CredentialSource, verifier: TokenVerifier, provisioner: Provisioner) -> None:
        self._credentials = credentials
        self._verifier = verifier
        self._provisioner = provisioner

        self._snapshot = SessionSnapshot()
        self._listeners: List[SessionListener] = []
        self._inflight: Dict[str, asyncio.Task] = {}
        self._epoch = 0
        self._target: Optional[str] = None
        self._settled = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    # Public API ----------------------------------------------------------------

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register ``listener``; it is called at once with the current snapshot."""

        self._listeners.append(listener)
        listener(self._snapshot)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def start(self) -> None:
        """Subscribe to the provider and resolve the current identity."""

        if self._closed:
            raise RuntimeError("session resolver is closed")
        if self._unsubscribe is not None:
            return

        self._loop = asyncio.get_running_loop()
        self._unsubscribe = self._credentials.on_credential_change(self.handle_credential_change)
        self.handle_credential_change(getattr(self._credentials, "current_identity", None))

    async def wait_settled(self, timeout: Optional[float] = None) -> SessionSnapshot:
        await asyncio.wait_for(self._settled.wait(), timeout)
        return self._snapshot

    async def close(self) -> None:
        """Stop listening and drop anything still in flight."""

        self._closed = True
        self._epoch += 1
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        tasks = list(self._inflight.values())
        self._inflight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._listeners.clear()

    # Notifications -------------------------------------------------------------

    def handle_credential_change(self, identity: Optional[Identity]) -> None:
        if self._closed:
            return

        target = identity.id if identity is not None else None
        if target != self._target:
            self._epoch += 1
            self._target = target
            self._cancel_flights(keep=target)

        if identity is None:
            self._publish(SessionSnapshot(state=SessionState.UNAUTHENTICATED))
            return

        self._publish(SessionSnapshot(state=SessionState.AUTHENTICATING, identity=identity))

        task = self._inflight.get(identity.id)
        if task is not None and not task.done():
            logger.debug("Joining in-flight resolution", identity_hash=scrub_identifier(identity.id))
            return

        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._resolve(identity, self._epoch))
        self._inflight[identity.id] = task
        task.add_done_callback(lambda t, key=identity.id: self._forget(key, t))

    # Internals -------------------------------------------------------------

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _cancel_flights(self, keep: Optional[str]) -> None:
        for key, task in list(self._inflight.items()):
            if key != keep:
                task.cancel()
                del self._inflight[key]

    def _current(self, epoch: int) -> bool:
        return not self._closed and epoch == self._epoch

    def _publish(self, snapshot: SessionSnapshot) -> None:
        self._snapshot = snapshot
        if snapshot.is_loading:
            self._settled.clear()
        else:
            self._settled.set()

        for listener in list(self._listeners):
            listener(snapshot)

    def _apply(self, epoch: int, snapshot: SessionSnapshot) -> None:
        if self._current(epoch):
            self._publish(snapshot)
        else:
            logger.debug("Discarding stale session result", state=snapshot.state.value)

    async def _verify(self, identity: Identity, force_refresh: bool = False) -> tuple[str, VerifiedToken]:
        raw = await self._credentials.get_token(identity.id, force_refresh=force_refresh)
        token = await asyncio.to_thread(self._verifier.verify, raw)
        if token.identity_id != identity.id:
            raise ProvisioningFailed("Token subject does not match the signed-in identity")
        return raw, token

    async def _resolve(self, identity: Identity, epoch: int) -> None:
        identity_hash = scrub_identifier(identity.id)
        try:
            raw, token = await self._verify(identity)

            if token.claims is None:
                self._apply(epoch, SessionSnapshot(state=SessionState.PROVISIONING, identity=identity))
                logger.info("Provisioning identity", identity_hash=identity_hash)

                await self._provisioner.provision(raw)

                _, token = await self._verify(identity, force_refresh=True)
                if token.claims is None:
                    raise ProvisioningFailed("Refreshed token carries no claims")

            self._apply(
                epoch,
                SessionSnapshot(
                    state=SessionState.READY,
                    identity=identity,
                    tenant_id=token.claims.tenant_id,
                    role=token.claims.role,
                ),
            )
        except asyncio.CancelledError:
            raise
        except TenancyError as exc:
            logger.warning("Session resolution failed", identity_hash=identity_hash, error_code=exc.code)
            self._apply(epoch, SessionSnapshot(state=SessionState.UNAUTHENTICATED, error=exc))
        except Exception as exc:  # noqa: BLE001 - fail closed on anything unexpected
            logger.error("Session resolution crashed", identity_hash=identity_hash, error=type(exc).__name__)
            failure = ProvisioningFailed(str(exc) or type(exc).__name__)
            failure.__cause__ = exc
            self._apply(epoch, SessionSnapshot(state=SessionState.UNAUTHENTICATED, error=failure))
