"""Unit tests for the client-side session resolver."""

import asyncio

import pytest

from adapters.db.tenant_store import TenantRepository
from adapters.db.users_store import ClaimsRepository
from app_platform.config.auth import AuthConfig
from application.tenancy.provisioning import LocalProvisioner, ProvisioningService
from application.tenancy.session import SessionResolver, SessionState
from domains.tenancy.exceptions import ProvisioningFailed


class _GatedProvisioner:
    """Blocks until released so tests can act while provisioning is in flight."""

    def __init__(self, on_release=None):
        self.calls = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self._on_release = on_release

    async def provision(self, raw_token):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        if self._on_release is not None:
            self._on_release()


class _FailingProvisioner:
    def __init__(self, error):
        self.calls = 0
        self._error = error

    async def provision(self, raw_token):
        self.calls += 1
        raise self._error


class _CountingProvisioner:
    """Counts provisioning calls, then delegates to the wrapped provisioner."""

    def __init__(self, inner):
        self.calls = 0
        self._inner = inner

    async def provision(self, raw_token):
        self.calls += 1
        return await self._inner.provision(raw_token)


def _local_provisioner(store, provider, verifier, pinned=None):
    config = AuthConfig(identity_provider="mock", pinned_tenants=pinned or {})
    service = ProvisioningService(store, ClaimsRepository(store), TenantRepository(store), provider, config)
    return _CountingProvisioner(LocalProvisioner(verifier, service))


@pytest.mark.auth
@pytest.mark.unit
class TestSessionResolution:
    def test_new_identity_is_provisioned_to_ready(self, store, provider, verifier):
        provisioner = _local_provisioner(store, provider, verifier, {"owner@shop.com": ("t1", "owner")})
        states = []

        async def scenario():
            provider.sign_in("u1", email="owner@shop.com", name="Dona")
            resolver = SessionResolver(provider, verifier, provisioner)
            resolver.subscribe(lambda snap: states.append(snap.state))
            resolver.start()
            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())

        assert snapshot.state is SessionState.READY
        assert snapshot.tenant_id == "t1"
        assert snapshot.role == "owner"
        assert snapshot.identity.id == "u1"
        assert provisioner.calls == 1
        assert provider.refresh_count == 1
        assert SessionState.PROVISIONING in states
        assert states[0] is SessionState.UNKNOWN

    def test_existing_claims_skip_provisioning(self, provider, verifier):
        provisioner = _FailingProvisioner(AssertionError("must not provision"))
        provider.set_custom_claims("u1", {"tenantId": "t1", "role": "admin"})

        async def scenario():
            provider.sign_in("u1")
            resolver = SessionResolver(provider, verifier, provisioner)
            resolver.start()
            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.READY
        assert snapshot.claims.tenant_id == "t1"
        assert provisioner.calls == 0

    def test_no_identity_is_unauthenticated(self, provider, verifier):
        async def scenario():
            resolver = SessionResolver(provider, verifier, _FailingProvisioner(AssertionError()))
            resolver.start()
            snapshot = await resolver.wait_settled(timeout=1)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.identity is None

    def test_sign_out_returns_to_unauthenticated(self, provider, verifier):
        provider.set_custom_claims("u1", {"tenantId": "t1", "role": "admin"})

        async def scenario():
            provider.sign_in("u1")
            resolver = SessionResolver(provider, verifier, _FailingProvisioner(AssertionError()))
            resolver.start()
            await resolver.wait_settled(timeout=10)
            provider.sign_out()
            snapshot = resolver.snapshot
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.claims is None


@pytest.mark.auth
@pytest.mark.unit
class TestSessionConcurrency:
    def test_concurrent_notifications_provision_once(self, store, provider, verifier):
        provisioner = _local_provisioner(store, provider, verifier)

        async def scenario():
            identity = provider.sign_in("u1", email="ana@shop.com")
            resolver = SessionResolver(provider, verifier, provisioner)
            resolver.start()
            resolver.handle_credential_change(identity)
            resolver.handle_credential_change(identity)
            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.READY
        assert provisioner.calls == 1
        assert len(store.list("tenants")) == 1

    def test_notification_during_provisioning_joins_flight(self, provider, verifier):
        async def scenario():
            gated = _GatedProvisioner(
                on_release=lambda: provider.set_custom_claims("u1", {"tenantId": "t1", "role": "owner"})
            )
            identity = provider.sign_in("u1", email="ana@shop.com")
            resolver = SessionResolver(provider, verifier, gated)
            resolver.start()
            await asyncio.wait_for(gated.started.wait(), timeout=5)

            assert resolver.snapshot.is_provisioning
            resolver.handle_credential_change(identity)
            gated.release.set()

            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot, gated.calls

        snapshot, calls = asyncio.run(scenario())
        assert snapshot.state is SessionState.READY
        assert calls == 1

    def test_superseding_identity_discards_stale_result(self, provider, verifier):
        provider.set_custom_claims("u2", {"tenantId": "t2", "role": "admin"})

        async def scenario():
            gated = _GatedProvisioner()
            provider.sign_in("u1", email="a@shop.com")
            resolver = SessionResolver(provider, verifier, gated)
            resolver.start()
            await asyncio.wait_for(gated.started.wait(), timeout=5)

            provider.sign_in("u2", email="b@shop.com")
            gated.release.set()
            snapshot = await resolver.wait_settled(timeout=10)
            await asyncio.sleep(0)
            final = resolver.snapshot
            await resolver.close()
            return snapshot, final

        snapshot, final = asyncio.run(scenario())
        assert snapshot.identity.id == "u2"
        assert snapshot.tenant_id == "t2"
        assert final == snapshot

    def test_close_discards_outstanding_result(self, provider, verifier):
        seen = []

        async def scenario():
            gated = _GatedProvisioner(
                on_release=lambda: provider.set_custom_claims("u1", {"tenantId": "t1", "role": "owner"})
            )
            provider.sign_in("u1", email="a@shop.com")
            resolver = SessionResolver(provider, verifier, gated)
            resolver.subscribe(seen.append)
            resolver.start()
            await asyncio.wait_for(gated.started.wait(), timeout=5)

            await resolver.close()
            gated.release.set()
            await asyncio.sleep(0.05)
            return resolver.snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.PROVISIONING
        assert all(snap.state is not SessionState.READY for snap in seen)


@pytest.mark.auth
@pytest.mark.unit
class TestSessionFailClosed:
    def test_provisioning_failure_is_unauthenticated(self, provider, verifier):
        provisioner = _FailingProvisioner(ProvisioningFailed("store down"))

        async def scenario():
            provider.sign_in("u1", email="a@shop.com")
            resolver = SessionResolver(provider, verifier, provisioner)
            resolver.start()
            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert isinstance(snapshot.error, ProvisioningFailed)
        assert snapshot.tenant_id is None

    def test_refresh_without_claims_fails_closed(self, provider, verifier):
        provisioner = _FailingProvisioner(None)
        provisioner.provision = _noop_provision

        async def scenario():
            provider.sign_in("u1", email="a@shop.com")
            resolver = SessionResolver(provider, verifier, provisioner)
            resolver.start()
            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert isinstance(snapshot.error, ProvisioningFailed)

    def test_unexpected_error_is_wrapped(self, provider, verifier):
        provisioner = _FailingProvisioner(RuntimeError("boom"))

        async def scenario():
            provider.sign_in("u1", email="a@shop.com")
            resolver = SessionResolver(provider, verifier, provisioner)
            resolver.start()
            snapshot = await resolver.wait_settled(timeout=10)
            await resolver.close()
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert isinstance(snapshot.error, ProvisioningFailed)
        assert isinstance(snapshot.error.__cause__, RuntimeError)


async def _noop_provision(raw_token):
    return None
