"""Firebase Auth REST client playing the client side of the identity provider.

Signs identities in with email and password, keeps their ID and refresh
tokens, exchanges the refresh token for a fresh ID token on demand and
notifies credential listeners on sign-in, sign-out and forced refresh.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from domains.tenancy.exceptions import Unauthorized
from domains.tenancy.models import Identity


logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
REFRESH_URL = "https://securetoken.googleapis.com/v1/token"

# Refresh this many seconds before the provider's stated expiry.
_EXPIRY_MARGIN_S = 60

CredentialListener = Callable[[Optional[Identity]], None]


@dataclass(slots=True)
class _Credential:
    id_token: str
    refresh_token: str
    expires_at: float


class FirebaseRestIdentityClient:
    def __init__(
        self,
        api_key: str,
        *,
        timeout_s: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._api_key = api_key
        self._timeout = timeout_s
        self._session = session or requests.Session()
        self._clock = clock

        self._current: Optional[Identity] = None
        self._credentials: Dict[str, _Credential] = {}
        self._listeners: List[CredentialListener] = []

    @property
    def current_identity(self) -> Optional[Identity]:
        return self._current

    def on_credential_change(self, listener: CredentialListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, identity: Optional[Identity]) -> None:
        for listener in list(self._listeners):
            listener(identity)

    # Network ---------------------------------------------------------------

    def _post(self, url: str, **kwargs: Any) -> Mapping[str, Any]:
        try:
            resp = self._session.post(url, params={"key": self._api_key}, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Identity provider request failed: %s", type(exc).__name__)
            raise Unauthorized("Identity provider unreachable") from exc

        if resp.status_code != 200:
            message = "request rejected"
            try:
                message = resp.json().get("error", {}).get("message", message)
            except (ValueError, AttributeError):
                pass
            logger.info("Identity provider returned %s: %s", resp.status_code, message)
            raise Unauthorized(f"Identity provider rejected the request: {message}")

        return resp.json()

    def _sign_in_sync(self, email: str, password: str) -> Identity:
        body = self._post(
            SIGN_IN_URL,
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        identity = Identity(
            id=body["localId"],
            email=body.get("email") or email,
            display_name=body.get("displayName") or None,
        )
        self._credentials[identity.id] = _Credential(
            id_token=body["idToken"],
            refresh_token=body["refreshToken"],
            expires_at=self._clock() + int(body.get("expiresIn", 3600)),
        )
        return identity

    def _refresh_sync(self, identity_id: str) -> _Credential:
        credential = self._credentials.get(identity_id)
        if credential is None:
            raise Unauthorized("Identity is not signed in")

        body = self._post(
            REFRESH_URL,
            data={"grant_type": "refresh_token", "refresh_token": credential.refresh_token},
        )
        refreshed = _Credential(
            id_token=body["id_token"],
            refresh_token=body.get("refresh_token") or credential.refresh_token,
            expires_at=self._clock() + int(body.get("expires_in", 3600)),
        )
        self._credentials[identity_id] = refreshed
        return refreshed

    # Public API --------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> Identity:
        identity = await asyncio.to_thread(self._sign_in_sync, email, password)
        self._current = identity
        self._notify(identity)
        return identity

    def sign_out(self) -> None:
        if self._current is not None:
            self._credentials.pop(self._current.id, None)
        self._current = None
        self._notify(None)

    async def get_token(self, identity_id: str, force_refresh: bool = False) -> str:
        """Return a valid ID token, exchanging the refresh token when forced or stale."""

        current = self._current
        if current is None or current.id != identity_id:
            raise Unauthorized("Identity is not signed in")

        credential = self._credentials[identity_id]
        stale = credential.expires_at - _EXPIRY_MARGIN_S <= self._clock()
        if not (force_refresh or stale):
            return credential.id_token

        credential = await asyncio.to_thread(self._refresh_sync, identity_id)
        if force_refresh and self._current is current:
            self._notify(current)
        return credential.id_token
