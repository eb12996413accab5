"""Fixtures for HTTP surface tests."""

from __future__ import annotations

import pytest

from app_platform.config.auth import AuthConfig
from apps.api.main import create_app


@pytest.fixture
def api_config():
    return AuthConfig(
        identity_provider="mock",
        firebase_project_id="logitrack-mock",
        pinned_tenants={"boss@shop.com": ("1", "owner")},
    )


@pytest.fixture
def app(api_config, provider, store):
    app = create_app(api_config, provider=provider, store=store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def bearer(provider):
    """Mint a bearer header for ``uid`` carrying its current custom claims."""

    def _bearer(uid, email=None, name=None):
        return {"Authorization": f"Bearer {provider.mint_token(uid, email=email, name=name)}"}

    return _bearer


@pytest.fixture
def owner_headers(client, bearer):
    """Provision ``boss@shop.com`` into tenant ``1`` and return fresh headers."""

    resp = client.post("/provision", headers=bearer("boss", email="boss@shop.com", name="Boss"))
    assert resp.status_code == 200
    return bearer("boss", email="boss@shop.com")
