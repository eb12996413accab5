"""Factory for building the identity provider."""

from __future__ import annotations

from app_platform.config.auth import AuthConfig
from domains.tenancy.exceptions import ConfigurationError

from .base import IdentityProvider
from .deny_all import DenyAllIdentityProvider
from .firebase import FirebaseIdentityProvider
from .mock_provider import MockIdentityProvider


def _require_str(value, key: str) -> str:
    """Require a non-empty string configuration value."""

    if not value or not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"config[{key}] must be a non-empty string")

    return value.strip()


def build_identity_provider(config: AuthConfig) -> IdentityProvider:
    """Build the identity provider named by ``config.identity_provider``."""

    kind = (config.identity_provider or "").strip().lower()

    if kind == "deny":
        return DenyAllIdentityProvider()

    if kind == "mock":
        return MockIdentityProvider(
            project_id=config.firebase_project_id or "logitrack-mock",
            clock_skew_s=config.clock_skew_s,
        )

    if kind == "firebase":
        return FirebaseIdentityProvider(
            project_id=_require_str(config.firebase_project_id, "firebase_project_id"),
            clock_skew_s=int(config.clock_skew_s),
        )

    raise ConfigurationError(f"Unknown identity provider: {config.identity_provider}")
