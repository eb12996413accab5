"""Deny-all identity provider. Used when no real provider is configured."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from adapters.providers.base import IdentityProvider


class DenyAllIdentityProvider(IdentityProvider):
    def verify_token(self, token: str) -> Mapping[str, Any]:
        raise ValueError("token rejected by deny-all provider")

    def set_custom_claims(self, identity_id: str, claims: Mapping[str, Any]) -> None:
        raise RuntimeError("deny-all provider cannot store claims")

    def healthcheck(self) -> Dict[str, Any]:
        return {"provider": "DenyAllIdentityProvider", "status": "ok"}
