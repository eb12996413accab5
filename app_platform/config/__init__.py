"""Configuration utilities and loaders."""

from .auth import AuthConfig, parse_pinned_tenants

__all__ = [
    "AuthConfig",
    "parse_pinned_tenants",
]
