"""Client for the ``POST /provision`` endpoint.

The session resolver awaits :meth:`ProvisioningClient.provision`; the HTTP
round-trip itself is blocking ``requests`` code run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from domains.tenancy.exceptions import ProvisioningFailed, Unauthorized
from domains.tenancy.models import Claims


logger = logging.getLogger(__name__)

DEFAULT_PROVISIONING_URL = "http://localhost:8080/provision"
DEFAULT_TIMEOUT_S = 10.0


@dataclass(slots=True)
class ProvisioningClientConfig:
    """Configuration for :class:`ProvisioningClient`."""

    url: str = DEFAULT_PROVISIONING_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_S

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ProvisioningClientConfig":
        env = os.environ if env is None else env
        url = (env.get("PROVISIONING_URL") or DEFAULT_PROVISIONING_URL).strip()
        timeout = float(env.get("PROVISIONING_TIMEOUT_S", str(DEFAULT_TIMEOUT_S)))
        return cls(url=url, timeout_seconds=timeout)


class ProvisioningClient:
    """HTTP provisioner used by the session resolver."""

    def __init__(self, config: ProvisioningClientConfig, *, session: Optional[requests.Session] = None) -> None:
        self._cfg = config
        self._timeout = max(0.1, float(config.timeout_seconds))
        self._session = session or requests.Session()

    async def provision(self, raw_token: str) -> Optional[Claims]:
        return await asyncio.to_thread(self.provision_sync, raw_token)

    def provision_sync(self, raw_token: str) -> Optional[Claims]:
        """Call the endpoint and return the claims echoed in the response, if any."""

        headers = {"Authorization": f"Bearer {raw_token}", "Accept": "application/json"}
        try:
            resp = self._session.post(self._cfg.url, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("Provisioning request failed: %s", type(exc).__name__)
            raise ProvisioningFailed("Provisioning endpoint unreachable") from exc

        if resp.status_code == 401:
            raise Unauthorized("Provisioning endpoint rejected the credential")
        if resp.status_code != 200:
            logger.warning("Provisioning endpoint returned %s", resp.status_code)
            raise ProvisioningFailed(f"Provisioning endpoint returned {resp.status_code}")

        return self._claims_from_body(resp)

    @staticmethod
    def _claims_from_body(resp: requests.Response) -> Optional[Claims]:
        try:
            body: Any = resp.json()
        except ValueError:
            return None
        if not isinstance(body, Mapping):
            return None
        tenant_id = body.get("tenantId") or body.get("companyId")
        role = body.get("role")
        if isinstance(tenant_id, str) and tenant_id and isinstance(role, str) and role:
            return Claims(tenant_id=tenant_id, role=role)
        return None
