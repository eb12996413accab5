"""
Firebase ID token provider backed by the Firebase Admin SDK.

Tokens are verified with ``firebase_auth.verify_id_token`` (signature,
issuer, audience, expiry and ``auth_time`` checks, with Google's public keys
fetched and cached by the SDK). Custom claims are written through the same app.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from app_platform.utils.circuit_breaker import BreakerOpenError, CircuitBreaker

from .base import IdentityProvider


logger = logging.getLogger(__name__)

# verify_id_token accepts at most one minute of skew
MAX_CLOCK_SKEW_S = 60


class FirebaseIdentityProvider(IdentityProvider):
    """Firebase Auth as the identity provider of record."""

    def __init__(
        self,
        *,
        project_id: str,
        clock_skew_s: int = 0,
        app: Optional[firebase_admin.App] = None,
    ) -> None:
        if not project_id or not isinstance(project_id, str):
            raise ValueError("project_id must be a non-empty string")

        self._project_id = project_id
        self._issuer = f"https://securetoken.google.com/{project_id}"
        self._clock_skew_s = max(0, min(int(clock_skew_s), MAX_CLOCK_SKEW_S))
        self._claims_breaker = CircuitBreaker("custom-claims", failure_threshold=5, window_seconds=30, half_open_after_s=15)
        self._app = app # Firebase Admin app, resolved lazily

    @property
    def project_id(self) -> str:
        return self._project_id

    @property
    def issuer(self) -> str:
        return self._issuer

    def _admin_app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app()
            except ValueError:
                self._app = firebase_admin.initialize_app(options={"projectId": self._project_id})
        return self._app

    def verify_token(self, token: str) -> Mapping[str, Any]:
        """Verify a Firebase ID token and return its payload."""

        if not token or not isinstance(token, str):
            raise ValueError("token must be a non-empty string")

        try:
            claims = firebase_auth.verify_id_token(
                token,
                app=self._admin_app(),
                clock_skew_seconds=self._clock_skew_s,
            )
        except firebase_auth.ExpiredIdTokenError as exc:
            raise ValueError("token expired") from exc
        except firebase_auth.InvalidIdTokenError as exc:
            raise ValueError(f"invalid token: {exc}") from exc
        except firebase_auth.CertificateFetchError as exc:
            logger.warning(f"Firebase public key fetch failed: {exc}")
            raise ValueError("unable to fetch token signing keys") from exc

        if not claims.get("sub"):
            raise ValueError("token has empty subject")

        return dict(claims)

    def set_custom_claims(self, identity_id: str, claims: Mapping[str, Any]) -> None:
        """Replace the custom claims carried by future tokens of ``identity_id``."""

        if not identity_id or not isinstance(identity_id, str):
            raise ValueError("identity_id must be a non-empty string")

        app = self._admin_app()
        try:
            self._claims_breaker.wrap_call(
                lambda: firebase_auth.set_custom_user_claims(identity_id, dict(claims), app=app),
                max_tries=2,
                retry_on=(firebase_exceptions.UnavailableError,),
            )
        except BreakerOpenError as exc:
            raise RuntimeError("custom claims writer unavailable") from exc

    def healthcheck(self) -> Dict[str, Any]:
        return {
            "provider": "FirebaseIdentityProvider",
            "status": "ok",
            "issuer": self._issuer,
            "audience": self._project_id,
            "clock_skew_s": self._clock_skew_s,
            "claims_breaker": self._claims_breaker.state,
        }
