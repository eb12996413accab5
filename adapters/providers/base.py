"""Identity provider boundary."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping


class IdentityProvider(ABC):
    """Verifies bearer credentials and stores per-identity custom claims.

    ``verify_token`` raises ValueError for any malformed, expired or
    mis-signed token and returns the decoded payload otherwise.
    """

    @abstractmethod
    def verify_token(self, token: str) -> Mapping[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def set_custom_claims(self, identity_id: str, claims: Mapping[str, Any]) -> None:
        raise NotImplementedError

    @abstractmethod
    def healthcheck(self) -> Dict[str, Any]:
        raise NotImplementedError
