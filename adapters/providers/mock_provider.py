"""
Mock identity provider with local RS256 signing.

Plays both sides of the identity boundary for development and tests: the
server side verifies tokens and stores custom claims, the client side signs
identities in and out, hands out tokens and notifies credential listeners.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from cryptography.hazmat.primitives import serialization  # type: ignore[import]
from cryptography.hazmat.primitives.asymmetric import rsa  # type: ignore[import]
from jose import jwt  # type: ignore[import]

from domains.tenancy.exceptions import Unauthorized
from domains.tenancy.models import Identity

from .base import IdentityProvider
from .token_verifier import decode_rs256

CredentialListener = Callable[[Optional[Identity]], None]

MOCK_KID = "mock-key-1"


def generate_rsa_keypair() -> tuple[str, str]:
    """Return ``(private_pem, public_pem)`` for a fresh 2048-bit key."""

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
    return private_pem, public_pem


class MockIdentityProvider(IdentityProvider):
    """Local RS256 identity provider shaped like Firebase Auth."""

    def __init__(
        self,
        *,
        project_id: str = "logitrack-mock",
        private_key_pem: Optional[str] = None,
        public_key_pem: Optional[str] = None,
        clock_skew_s: int = 0,
        token_ttl_s: int = 3600,
        notify_on_refresh: bool = True,
    ) -> None:
        if (private_key_pem is None) != (public_key_pem is None):
            raise ValueError("provide both private_key_pem and public_key_pem or neither")

        if private_key_pem is None:
            private_key_pem, public_key_pem = generate_rsa_keypair()
            self._key_mode = "generated"
        else:
            self._key_mode = "provided"

        self._project_id = project_id
        self._issuer = f"https://securetoken.google.com/{project_id}"
        self._private_key_pem = private_key_pem
        self._public_key_pem = public_key_pem
        self._clock_skew_s = int(clock_skew_s)
        self._token_ttl_s = int(token_ttl_s)
        self._notify_on_refresh = notify_on_refresh

        self._custom_claims: Dict[str, Dict[str, Any]] = {}
        self._profiles: Dict[str, Identity] = {}
        self._current: Optional[Identity] = None
        self._tokens: Dict[str, str] = {}
        self._listeners: List[CredentialListener] = []

        # Failure injection counters (for tests)
        self._inject_fail_next_set: int = 0

        self.refresh_count = 0
        self.set_claims_calls = 0

    # Server side -----------------------------------------------------------

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def issuer(self) -> str:
        return self._issuer

    @property
    def private_key_pem(self) -> str:
        return self._private_key_pem

    @property
    def public_key_pem(self) -> str:
        return self._public_key_pem

    def mint_token(
        self,
        identity_id: str,
        *,
        email: Optional[str] = None,
        name: Optional[str] = None,
        extra_claims: Optional[Mapping[str, Any]] = None,
        expires_in_s: Optional[int] = None,
    ) -> str:
        """Sign a token carrying the identity's current custom claims."""

        now = int(time.time())
        payload: Dict[str, Any] = {
            "iss": self._issuer,
            "aud": self._project_id,
            "sub": identity_id,
            "user_id": identity_id,
            "iat": now,
            "auth_time": now,
            "exp": now + (self._token_ttl_s if expires_in_s is None else int(expires_in_s)),
        }
        if email:
            payload["email"] = email
        if name:
            payload["name"] = name
        payload.update(self._custom_claims.get(identity_id, {}))
        if extra_claims:
            payload.update(extra_claims)

        return jwt.encode(payload, self._private_key_pem, algorithm="RS256", headers={"kid": MOCK_KID})

    def verify_token(self, token: str) -> Mapping[str, Any]:
        if not token or not isinstance(token, str):
            raise ValueError("token must be a non-empty string")

        return decode_rs256(
            token=token,
            key=self._public_key_pem,
            audience=self._project_id,
            issuer=self._issuer,
            clock_skew_s=self._clock_skew_s,
        )

    def set_custom_claims(self, identity_id: str, claims: Mapping[str, Any]) -> None:
        self.set_claims_calls += 1
        if self._inject_fail_next_set > 0:
            self._inject_fail_next_set -= 1
            raise RuntimeError("injected custom claims failure")

        self._custom_claims[identity_id] = dict(claims)

    def custom_claims(self, identity_id: str) -> Dict[str, Any]:
        return dict(self._custom_claims.get(identity_id, {}))

    def inject_failure(self, *, set: int = 0) -> None:
        self._inject_fail_next_set = int(set)

    def healthcheck(self) -> Dict[str, Any]:
        return {
            "provider": "MockIdentityProvider",
            "status": "ok",
            "mode": "mock",
            "alg": "RS256",
            "key_mode": self._key_mode,
            "issuer": self._issuer,
        }

    # Client side -----------------------------------------------------------

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._current

    def on_credential_change(self, listener: CredentialListener) -> Callable[[], None]:
        """Subscribe to sign-in, sign-out and token refresh notifications."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, identity: Optional[Identity]) -> None:
        for listener in list(self._listeners):
            listener(identity)

    def sign_in(self, identity_id: str, *, email: Optional[str] = None, name: Optional[str] = None) -> Identity:
        identity = Identity(id=identity_id, email=email, display_name=name)
        self._profiles[identity_id] = identity
        self._current = identity
        self._tokens[identity_id] = self.mint_token(identity_id, email=email, name=name)
        self._notify(identity)
        return identity

    def sign_out(self) -> None:
        if self._current is not None:
            self._tokens.pop(self._current.id, None)
        self._current = None
        self._notify(None)

    async def get_token(self, identity_id: str, force_refresh: bool = False) -> str:
        """Return the identity's token, minting a new one when forced."""

        await asyncio.sleep(0)

        current = self._current
        if current is None or current.id != identity_id:
            raise Unauthorized("Identity is not signed in")

        token = self._tokens.get(identity_id)
        if token is None or force_refresh:
            token = self.mint_token(identity_id, email=current.email, name=current.display_name)
            self._tokens[identity_id] = token
            if force_refresh:
                self.refresh_count += 1
                if self._notify_on_refresh:
                    self._notify(current)

        return token
