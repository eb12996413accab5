from __future__ import annotations

import logging
from typing import Any, Dict

from jose import jwt  # type: ignore[import]
from jose.exceptions import JWTError  # type: ignore[import]

from domains.tenancy.exceptions import InvalidToken
from domains.tenancy.models import Claims, VerifiedToken

from .base import IdentityProvider


logger = logging.getLogger(__name__)


def decode_rs256(*, token: str, key: Any, audience: str, issuer: str, clock_skew_s: int) -> Dict[str, Any]:
    """Strict RS256 decode enforcing audience, issuer and standard claims."""

    if hasattr(key, "to_pem"):
        key = key.to_pem().decode("utf-8")

    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=audience,
            issuer=issuer,
            options={
                "verify_signature": True,
                "verify_aud": True,
                "verify_iss": True,
                "verify_iat": True,
                "verify_exp": True,
                "leeway": int(clock_skew_s),
            },
        )
    except JWTError as exc:
        raise ValueError(f"invalid token: {exc}") from exc

    return dict(claims)


class TokenVerifier:
    """Turns a raw bearer credential into a ``VerifiedToken``.

    Malformed, expired or mis-signed tokens and tokens whose tenant/role
    claims are partial or mistyped raise ``InvalidToken``. A valid token with
    no claims yet comes back with ``claims=None``.
    """

    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    def verify(self, raw_token: str) -> VerifiedToken:
        if not raw_token or not isinstance(raw_token, str):
            raise InvalidToken("Missing token")

        try:
            payload = self._provider.verify_token(raw_token)
        except ValueError as exc:
            logger.info(f"Token rejected: {exc}")
            raise InvalidToken(str(exc)) from exc

        identity_id = payload.get("sub") or payload.get("uid") or payload.get("user_id")
        if not identity_id or not isinstance(identity_id, str):
            raise InvalidToken("Token has no subject")

        claims = Claims.from_mapping(payload)

        return VerifiedToken(
            identity_id=identity_id,
            claims=claims,
            email=payload.get("email"),
            name=payload.get("name"),
            raw_claims=dict(payload),
        )
