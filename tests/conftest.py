"""Top-level pytest configuration for LogiTrack tests."""

from __future__ import annotations

import pytest

from adapters.providers.mock_provider import MockIdentityProvider
from adapters.providers.token_verifier import TokenVerifier
from app_platform.config.auth import AuthConfig
from tests.fixtures.stores import CountingRecordStore

# record store and breaker suites run with the auth suite
_SUITE_DIRS = {
    "auth": "auth",
    "db": "auth",
    "platform": "auth",
    "orders": "orders",
    "api": "api",
    "logging": "logging",
}


def pytest_configure(config: pytest.Config) -> None:
    """Register global markers used across the repository."""

    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "auth: Identity, provisioning and tenancy tests")
    config.addinivalue_line("markers", "orders: Order lifecycle tests")
    config.addinivalue_line("markers", "api: HTTP surface tests")
    config.addinivalue_line("markers", "logging: Logging library focused tests")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Ensure sensible default markers based on collection context."""

    for item in items:
        item.add_marker(pytest.mark.unit)

        fspath = str(item.fspath)
        for folder, name in _SUITE_DIRS.items():
            if f"/{folder}/" in fspath:
                item.add_marker(getattr(pytest.mark, name))


@pytest.fixture(scope="session")
def rsa_keypair():
    """One key pair per session; RSA generation is slow."""

    from adapters.providers.mock_provider import generate_rsa_keypair

    return generate_rsa_keypair()


@pytest.fixture
def provider(rsa_keypair):
    private_pem, public_pem = rsa_keypair
    return MockIdentityProvider(private_key_pem=private_pem, public_key_pem=public_pem)


@pytest.fixture
def verifier(provider):
    return TokenVerifier(provider)


@pytest.fixture
def store():
    return CountingRecordStore()


@pytest.fixture
def auth_config():
    return AuthConfig(identity_provider="mock", firebase_project_id="logitrack-mock")
